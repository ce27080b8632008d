"""
Relevance Filter Tests
"""

from bridge.admission.relevance import RelevanceFilter
from bridge.contracts.base import ErrorCode, RejectReason

from ..fixtures import PUBKEY_A, PUBKEY_B, SECRET_A, SECRET_B, SECRET_ZAPPER, make_event


class TestKinds:

    def test_monitored_kind_is_admitted(self):
        assert RelevanceFilter((1,), PUBKEY_A).admit(make_event(SECRET_A, kind=1))

    def test_unmonitored_kind_is_rejected(self):
        verdict = RelevanceFilter((1,), PUBKEY_A).admit(make_event(SECRET_A, kind=7, content="+"))
        assert verdict.reason == RejectReason.UNMONITORED_KIND
        assert verdict.reason.error_code == ErrorCode.UNMONITORED_EVENT

    def test_monitored_kinds_property(self):
        assert RelevanceFilter([1, 7, 1]).monitored_kinds == frozenset({1, 7})


class TestAuthors:

    def test_other_author_is_rejected(self):
        verdict = RelevanceFilter((1,), PUBKEY_A).admit(make_event(SECRET_B))
        assert verdict.reason == RejectReason.UNMONITORED_AUTHOR

    def test_no_pubkey_admits_any_author(self):
        assert RelevanceFilter((1,)).admit(make_event(SECRET_B))

    def test_zap_addressed_to_account_is_admitted(self):
        receipt = make_event(SECRET_ZAPPER, kind=9735, content="", tags=[["p", PUBKEY_A]])
        assert RelevanceFilter((9735,), PUBKEY_A).admit(receipt)

    def test_zap_for_someone_else_is_rejected(self):
        receipt = make_event(SECRET_ZAPPER, kind=9735, content="", tags=[["p", PUBKEY_B]])
        verdict = RelevanceFilter((9735,), PUBKEY_A).admit(receipt)
        assert verdict.reason == RejectReason.UNMONITORED_AUTHOR
