"""Tests for the source registry."""

from licensecheck.engines.verify.boards import ArizonaVerifier, TexasVerifier
from licensecheck.engines.verify.base import LookupIdentity, SourceKind
from licensecheck.engines.verify.fallback import TaskReason
from licensecheck.engines.verify.registry import SourceRegistry

from conftest import FakeVerifier


class TestDefaultRegistry:
    def test_automated_jurisdictions(self):
        registry = SourceRegistry()
        assert registry.list_automated_jurisdictions() == {
            "WA", "OR", "ID", "AK", "MT", "AZ", "CA", "TX", "FL", "NC", "NY",
        }

    def test_unknown_jurisdiction_is_not_automated(self):
        capability = SourceRegistry().capability_for("ZZ")
        assert capability.automated is False
        assert capability.reason == TaskReason.UNSUPPORTED_JURISDICTION
        assert capability.config is None

    def test_missing_jurisdiction_is_not_an_error(self):
        capability = SourceRegistry().capability_for(None)
        assert capability.automated is False

    def test_lowercase_code(self):
        capability = SourceRegistry().capability_for("wa", "rn")
        assert capability.automated is True
        assert capability.config.lookup_url.startswith("https://fortress.wa.gov")

    def test_arizona_rn_goes_manual(self):
        """Arizona nurses are verified through Nursys, not the board lookup."""
        registry = SourceRegistry()
        assert registry.capability_for("AZ", "CNA").automated is True
        capability = registry.capability_for("AZ", "RN")
        assert capability.automated is False
        assert capability.reason == TaskReason.UNSUPPORTED_CREDENTIAL

    def test_board_lookup_source_kind(self):
        capability = SourceRegistry().capability_for("WA", "RN")
        assert capability.source_kind == SourceKind.WEBSITE
        assert capability.via_feed is False

    def test_feed_enrollment_replaces_board_lookup(self):
        """Enrolled nurses are automated even where no board adapter exists."""
        registry = SourceRegistry()
        for jurisdiction, credential in (("AZ", "RN"), ("ZZ", "RN"), ("WA", "RN")):
            capability = registry.capability_for(jurisdiction, credential, feed_enrolled=True)
            assert capability.automated is True
            assert capability.via_feed is True
            assert capability.reason is None

    def test_deterministic(self):
        registry = SourceRegistry()
        assert registry.capability_for("TX", "LVN") == registry.capability_for("TX", "LVN")

    def test_states_by_region(self):
        regions = SourceRegistry().states_by_region()
        assert regions["Pacific Northwest"] == ["WA", "OR", "ID", "AK", "MT"]
        assert regions["Northeast"] == ["NY"]
        flattened = {code for codes in regions.values() for code in codes}
        assert flattened == SourceRegistry().list_automated_jurisdictions()


class TestCustomRegistry:
    def test_unlisted_jurisdiction_grouped_as_other(self):
        registry = SourceRegistry(verifiers=[FakeVerifier("GU")])
        assert registry.states_by_region() == {"Other": ["GU"]}

    def test_get_verifier(self):
        verifier = FakeVerifier("OR")
        registry = SourceRegistry(verifiers=[verifier])
        assert registry.get_verifier("or") is verifier
        assert registry.get_verifier("WA") is None

    def test_concurrency_limit_from_adapter(self):
        registry = SourceRegistry(verifiers=[FakeVerifier("TX", max_concurrency=1)])
        assert registry.concurrency_limit("TX") == 1
        assert registry.concurrency_limit("WA") is None


class TestBoardConfigs:
    def test_texas_splits_lookup_pages(self):
        verifier = TexasVerifier()
        rn = LookupIdentity(license_number="1", jurisdiction="TX", credential_type="RN")
        lvn = LookupIdentity(license_number="1", jurisdiction="TX", credential_type="LVN")
        assert verifier.search_url(rn).endswith("rnlookup.asp")
        assert verifier.search_url(lvn).endswith("lvnlookup.asp")

    def test_supports_is_case_insensitive(self):
        assert ArizonaVerifier().supports("cna") is True
        assert ArizonaVerifier().supports(None) is False
