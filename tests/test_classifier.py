import pytest

from core import ChangeRecord, Classifier, Disposition, Review, TriagePolicy, classify, suggest_owner


def _record(files=(), author="outsider", assignees=(), reviews=()):
    return ChangeRecord(
        id="PR_1",
        url="https://github.com/microsoft/TypeScript/pull/1",
        title="demo",
        files=tuple(files),
        author=author,
        assignees=tuple(assignees),
        reviews=tuple(Review(author=a, state=s) for a, s in reviews),
    )


@pytest.mark.parametrize(
    "files, expected",
    [
        (["src/compiler/checker.ts"], Disposition.NOT_PORTED),
        (["src/lib/es2024.d.ts"], Disposition.NOT_PORTED),
        (["src/tsc/tsc.ts"], Disposition.NOT_PORTED),
        (["src/services/completions.ts"], Disposition.NA_LANGUAGE_SERVICE),
        (["src/typingsInstallerCore/core.ts"], Disposition.NA_LANGUAGE_SERVICE),
        (["src/compiler/watch.ts"], Disposition.NA_BUILD_WATCH),
        (["tests/cases/compiler/foo.ts", "README.md"], Disposition.NA_NO_NEED),
        ([], Disposition.NA_NO_NEED),
    ],
)
def test_classify_categories(files, expected):
    assert classify(_record(files)) is expected


def test_build_watch_path_under_core_prefix_is_not_core():
    record = _record(["src/compiler/watch.ts", "src/compiler/builder.ts"])

    assert classify(record) is Disposition.NA_BUILD_WATCH


def test_ignored_core_paths_do_not_need_porting():
    assert classify(_record(["src/compiler/types.ts", "src/compiler/tracing.ts"])) is Disposition.NA_NO_NEED


def test_porting_dominates_other_categories():
    record = _record(["src/services/services.ts", "src/compiler/watch.ts", "src/compiler/parser.ts"])

    assert classify(record) is Disposition.NOT_PORTED


def test_language_service_beats_build_watch():
    record = _record(["src/compiler/watchPublic.ts", "src/tsserver/server.ts"])

    assert classify(record) is Disposition.NA_LANGUAGE_SERVICE


def test_owner_prefers_member_author():
    record = _record(author="jakebailey", assignees=["weswigham"], reviews=[("sandersn", "APPROVED")])

    assert suggest_owner(record) == "jakebailey"


def test_owner_assignee_beats_approving_reviewer():
    record = _record(
        author="outsider",
        assignees=["stranger", "weswigham", "andrewbranch"],
        reviews=[("sandersn", "APPROVED")],
    )

    assert suggest_owner(record) == "weswigham"


def test_owner_approving_reviewer_beats_earlier_commenter():
    record = _record(reviews=[("gabritto", "COMMENTED"), ("stranger", "APPROVED"), ("iisaduan", "APPROVED")])

    assert suggest_owner(record) == "iisaduan"


def test_owner_falls_back_to_any_member_review():
    record = _record(reviews=[("stranger", "APPROVED"), ("gabritto", "CHANGES_REQUESTED")])

    assert suggest_owner(record) == "gabritto"


def test_owner_absent_without_members():
    record = _record(author=None, assignees=["a", "b"], reviews=[("c", "APPROVED"), (None, "COMMENTED")])

    assert suggest_owner(record) is None


def test_injected_policy_replaces_defaults():
    policy = TriagePolicy(
        core_prefixes=("lib/",),
        ignored_paths=frozenset({"lib/skip.py"}),
        build_watch_paths=frozenset({"lib/watch.py"}),
        language_service_prefixes=("tools/",),
        team_members=frozenset({"octo"}),
    )
    classifier = Classifier(policy)

    assert classifier.classify(_record(["lib/core.py"])) is Disposition.NOT_PORTED
    assert classifier.classify(_record(["lib/skip.py"])) is Disposition.NA_NO_NEED
    assert classifier.classify(_record(["lib/watch.py"])) is Disposition.NA_BUILD_WATCH
    assert classifier.classify(_record(["src/compiler/checker.ts"])) is Disposition.NA_NO_NEED
    assert classifier.suggest_owner(_record(author="jakebailey", assignees=["octo"])) == "octo"
