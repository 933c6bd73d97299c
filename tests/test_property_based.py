"""Property-based tests using hypothesis."""

import string
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from addinsync.addins.discovery import extract_manifest_url, parse_group_name
from addinsync.addins.models import AddInTarget, RunStatistics
from addinsync.addins.state import StateStore

# Custom strategies
email_local = st.text(
    alphabet=string.ascii_lowercase + string.digits + "._-", min_size=1, max_size=12
)
email_domain = st.sampled_from(["contoso.com", "example.com", "fabrikam.org"])
valid_email = st.builds(lambda local, domain: f"{local}@{domain}", email_local, email_domain)
member_sets = st.sets(valid_email, max_size=15)

segment = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=12)
addin_ids = st.lists(segment, min_size=1, max_size=3).map("-".join)


def make_target(current=(), previous=(), group_name="app-exchangeaddin-x-prod"):
    return AddInTarget(
        group_name=group_name,
        addin_id="x",
        environment="prod",
        manifest_url="https://addins.contoso.com/x/manifest.xml",
        current_members=set(current),
        previous_members=set(previous),
    )


class TestDiffProperties:
    """Property-based tests for membership diffs."""

    @given(current=member_sets, previous=member_sets)
    def test_add_and_remove_are_disjoint(self, current, previous):
        diff = make_target(current, previous).diff()
        assert not diff.to_add & diff.to_remove

    @given(current=member_sets, previous=member_sets)
    def test_applying_diff_converges(self, current, previous):
        diff = make_target(current, previous).diff()
        assert (previous | diff.to_add) - diff.to_remove == current

    @given(members=member_sets)
    def test_unchanged_membership_has_no_changes(self, members):
        assert not make_target(members, members).diff().has_changes

    @given(members=member_sets)
    def test_first_run_installs_everyone(self, members):
        diff = make_target(members, set()).diff()
        assert diff.to_add == members
        assert diff.to_remove == set()


class TestSnapshotProperties:
    """Property-based tests for snapshot persistence."""

    @given(memberships=st.lists(member_sets, min_size=1, max_size=4))
    @settings(max_examples=30)
    def test_save_then_load_reproduces_membership(self, memberships):
        targets = [
            make_target(members, group_name=f"app-exchangeaddin-x{i}-prod")
            for i, members in enumerate(memberships)
        ]
        with tempfile.TemporaryDirectory() as tmp:
            store = StateStore(Path(tmp) / "snapshot.json", RunStatistics())
            store.save(targets)

            loaded = [make_target(group_name=t.group_name) for t in targets]
            store.load(loaded)

        for saved, reloaded in zip(targets, loaded, strict=True):
            assert reloaded.previous_members == saved.current_members

    @given(members=member_sets)
    @settings(max_examples=30)
    def test_second_run_is_noop(self, members):
        with tempfile.TemporaryDirectory() as tmp:
            store = StateStore(Path(tmp) / "snapshot.json", RunStatistics())
            store.save([make_target(members)])

            next_run = make_target(members)
            store.load([next_run])

        assert not next_run.diff().has_changes


class TestGroupNameProperties:
    """Property-based tests for add-in group name parsing."""

    @given(addin_id=addin_ids, environment=segment)
    def test_parse_recovers_parts(self, addin_id, environment):
        name = f"app-exchangeaddin-{addin_id}-{environment}"
        assert parse_group_name(name, "app-exchangeaddin") == (addin_id, environment)

    @given(name=st.text(max_size=40))
    def test_other_prefixes_never_match(self, name):
        assert parse_group_name(f"zz{name}", "app-exchangeaddin") is None

    @given(path=st.lists(segment, min_size=1, max_size=4).map("/".join), text=segment)
    def test_manifest_url_extracted_from_text(self, path, text):
        url = f"https://addins.contoso.com/{path}/manifest.xml"
        assert extract_manifest_url(f"{text} {url}") == url
