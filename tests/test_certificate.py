"""
Certificate composer tests.
"""

import re
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from certengine import (
    AiSystemRecord,
    CertificateComposer,
    CertificateRecord,
    CertificateRequest,
    ComplianceStatus,
    MaturityAssessmentResult,
    MaturityLevel,
    RecommendationGenerator,
    RiskAssessmentResult,
    RiskLevel,
    StaticKeyProvider,
    ValidationError,
    certificate_hash,
    determine_certificate_type,
    generate_certificate_number,
    should_issue_automatically,
)
from certengine.keys import verify_ed25519
from certengine.recommendations import NullTextGenerator

NOW = datetime(2025, 3, 1, 9, 30, 0, 123456, tzinfo=timezone.utc)
SERIAL = re.compile(r'^(CF|RA|MA|CS|CC)-\d{4}-[A-Z0-9]{8}$')


def risk(level="high", score=85):
    return RiskAssessmentResult(
        risk_level=RiskLevel(level),
        risk_score=score,
        reasoning="",
        obligations=[],
        recommendations=[],
        timeline={"immediate": [], "short_term": [], "long_term": []},
    )


def maturity(score=70, level="managed"):
    return MaturityAssessmentResult(
        overall_maturity=MaturityLevel(level),
        overall_score=score,
        domain_scores={},
        recommendations=[],
        action_plan=[],
    )


def request(**overrides):
    base = dict(
        user_id="user-1",
        organization_name="Acme SAS",
        certificate_type="compliance_summary",
    )
    base.update(overrides)
    return CertificateRequest(**base)


def composer(**kwargs):
    kwargs.setdefault("recommendation_generator", RecommendationGenerator(NullTextGenerator()))
    kwargs.setdefault("clock", lambda: NOW)
    kwargs.setdefault("suffix_source", lambda: "ABCD1234")
    return CertificateComposer(**kwargs)


class TestSerial(unittest.TestCase):

    def test_prefix_per_type(self):
        for cert_type, prefix in (
            ("conformity", "CF"),
            ("risk_assessment", "RA"),
            ("maturity", "MA"),
            ("compliance_summary", "CS"),
            ("something_else", "CC"),
        ):
            with self.subTest(cert_type=cert_type):
                number = generate_certificate_number(cert_type, 2025)
                self.assertTrue(number.startswith(f"{prefix}-2025-"))
                self.assertRegex(number, SERIAL)

    def test_random_suffixes_differ(self):
        numbers = {generate_certificate_number("maturity", 2025) for _ in range(50)}
        self.assertEqual(len(numbers), 50)

    def test_bad_suffix_source_rejected(self):
        with self.assertRaises(ValueError):
            generate_certificate_number("maturity", 2025, lambda: "abc")

    def test_composed_serial_uses_issue_year(self):
        record = composer().compose(request(certificate_type="maturity", maturity_assessment=maturity()))
        self.assertEqual(record.certificate_number, "MA-2025-ABCD1234")


class TestComplianceScore(unittest.TestCase):

    def setUp(self):
        self.c = composer()

    def test_maturity_only_70(self):
        record = self.c.compose(request(certificate_type="maturity", maturity_assessment=maturity(70)))
        self.assertEqual(record.compliance_score, 70)
        self.assertEqual(record.compliance_details.overall_status, ComplianceStatus.PARTIALLY_COMPLIANT)
        self.assertEqual(record.compliance_details.next_review_date - record.issued_at, timedelta(days=270))
        self.assertEqual(record.valid_until - record.issued_at, timedelta(days=365))

    def test_risk_only_inverts_risk_score(self):
        score = self.c.compliance_score(request(risk_assessment=risk(score=85)))
        self.assertEqual(score, 15)

    def test_blend_weights(self):
        score = self.c.compliance_score(request(risk_assessment=risk(score=30),
                                                maturity_assessment=maturity(90)))
        # 70 * 0.4 + 90 * 0.6
        self.assertEqual(score, 82)

    def test_blend_rounds_half_up(self):
        score = self.c.compliance_score(request(risk_assessment=risk(score=25),
                                                maturity_assessment=maturity(41)))
        # 75 * 0.4 + 41 * 0.6 = 54.6
        self.assertEqual(score, 55)

    def test_ai_system_score_used_alone(self):
        system = AiSystemRecord(id="s1", name="HR screener", compliance_score=83)
        self.assertEqual(self.c.compliance_score(request(ai_system=system)), 83)

    def test_assessments_take_precedence_over_system_score(self):
        system = AiSystemRecord(id="s1", name="HR screener", compliance_score=10)
        self.assertEqual(self.c.compliance_score(request(ai_system=system, maturity_assessment=maturity(70))), 70)

    def test_nothing_present_defaults_to_50(self):
        self.assertEqual(self.c.compliance_score(request()), 50)


class TestStatusAndReview(unittest.TestCase):

    def test_status_bands(self):
        c = composer()
        for score, status, days in (
            (59, ComplianceStatus.NON_COMPLIANT, 180),
            (60, ComplianceStatus.PARTIALLY_COMPLIANT, 270),
            (79, ComplianceStatus.PARTIALLY_COMPLIANT, 270),
            (80, ComplianceStatus.COMPLIANT, 365),
        ):
            with self.subTest(score=score):
                record = c.compose(request(certificate_type="maturity", maturity_assessment=maturity(score)))
                self.assertEqual(record.compliance_details.overall_status, status)
                self.assertEqual(record.compliance_details.next_review_date,
                                 record.issued_at + timedelta(days=days))

    def test_lower_score_never_gets_longer_review(self):
        c = composer()
        offsets = [c.review_offset_days(s) for s in range(101)]
        self.assertTrue(all(o > 0 for o in offsets))
        self.assertEqual(offsets, sorted(offsets))


class TestComposition(unittest.TestCase):

    def test_issued_at_truncated_to_millis(self):
        record = composer().compose(request(maturity_assessment=maturity()))
        self.assertEqual(record.issued_at, NOW.replace(microsecond=123000))
        self.assertEqual(record.to_dict()["issuedAt"], "2025-03-01T09:30:00.123Z")

    def test_naive_clock_treated_as_utc(self):
        record = composer(clock=lambda: datetime(2025, 3, 1, 9, 30)).compose(request())
        self.assertEqual(record.issued_at.tzinfo, timezone.utc)

    def test_high_risk_mitigation_and_recommendations(self):
        record = composer().compose(request(certificate_type="risk_assessment", risk_assessment=risk()))
        self.assertEqual(len(record.compliance_details.risk_mitigation), 3)
        self.assertEqual(record.risk_level, "high")
        self.assertTrue(1 <= len(record.compliance_details.recommendations) <= 5)

    def test_minimal_risk_has_no_mitigation(self):
        record = composer().compose(request(risk_assessment=risk("minimal", 16)))
        self.assertEqual(record.compliance_details.risk_mitigation, [])

    def test_criteria_per_component(self):
        system = AiSystemRecord(id="s1", name="HR screener")
        record = composer().compose(request(
            certificate_type="compliance_summary",
            ai_system=system,
            risk_assessment=risk(),
            maturity_assessment=maturity(),
        ))
        self.assertEqual(len(record.certification_criteria.evaluated_domains), 3)
        self.assertEqual(record.system_name, "HR screener")
        self.assertEqual(record.maturity_level, "managed")

    def test_hash_covers_canonical_fields(self):
        record = composer().compose(request(maturity_assessment=maturity()))
        self.assertEqual(record.certification.hash, certificate_hash(
            certificate_number=record.certificate_number,
            organization_name="Acme SAS",
            system_name=None,
            issued_at="2025-03-01T09:30:00.123Z",
            compliance_score=70,
        ))

    def test_same_inputs_same_hash(self):
        a = composer().compose(request(maturity_assessment=maturity()))
        b = composer().compose(request(maturity_assessment=maturity()))
        self.assertEqual(a.certification.hash, b.certification.hash)

    def test_non_canonical_fields_do_not_affect_hash(self):
        record = composer().compose(request(maturity_assessment=maturity()))
        edited = replace(record, compliance_details=replace(
            record.compliance_details, recommendations=["Something else"]
        ))
        self.assertEqual(edited.compute_hash(), record.certification.hash)

    def test_certification_block(self):
        cert = composer().compose(request()).to_dict()["certification"]
        self.assertEqual(cert["authority"], "IA-ACT-NAVIGATOR")
        self.assertEqual(cert["version"], "1.0")
        self.assertNotIn("seal", cert)

    def test_sealed_when_key_provider_configured(self):
        keys = StaticKeyProvider.generate("seal-1")
        record = composer(key_provider=keys).compose(request())
        seal = record.certification.seal
        self.assertEqual(seal["kid"], "seal-1")
        self.assertEqual(seal["alg"], "ed25519")
        self.assertTrue(verify_ed25519(seal["sig_b64"], record.certification.hash.encode('ascii'),
                                       keys.public_keys()["seal-1"]))

    def test_round_trips_through_dict(self):
        record = composer(key_provider=StaticKeyProvider.generate()).compose(request(
            ai_system=AiSystemRecord(id="s1", name="HR screener"),
            risk_assessment=risk(),
            maturity_assessment=maturity(),
        ))
        self.assertEqual(CertificateRecord.from_dict(record.to_dict()), record)


class TestRequestValidation(unittest.TestCase):

    def test_unknown_type_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            composer().compose(request(certificate_type="gold_star"))
        self.assertEqual(ctx.exception.field, "certificateType")

    def test_blank_organization_rejected(self):
        with self.assertRaises(ValidationError):
            composer().compose(request(organization_name="   "))


class TestTypeSelection(unittest.TestCase):

    def test_determine_type(self):
        system = AiSystemRecord(id="s1", name="HR screener")
        self.assertEqual(determine_certificate_type(None, risk(), maturity()), "compliance_summary")
        self.assertEqual(determine_certificate_type(system, risk(), None), "conformity")
        self.assertEqual(determine_certificate_type(None, risk(), None), "risk_assessment")
        self.assertEqual(determine_certificate_type(None, None, maturity()), "maturity")
        self.assertEqual(determine_certificate_type(system, None, None), "compliance_summary")

    def test_automatic_issuance(self):
        self.assertTrue(should_issue_automatically(risk_assessment=risk("minimal", 16)))
        self.assertTrue(should_issue_automatically(maturity_assessment=maturity(40, "defined")))
        self.assertFalse(should_issue_automatically(maturity_assessment=maturity(39, "developing")))
        self.assertFalse(should_issue_automatically())


if __name__ == "__main__":
    unittest.main()
