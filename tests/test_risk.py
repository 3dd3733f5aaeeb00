"""
Risk classifier tests.
"""

import itertools
import unittest

from certengine import RiskClassifier, RiskLevel, ScoringConfig, ValidationError
from certengine.config import DEFAULT_SCORING_CONFIG, band_for
from certengine.risk import RiskAssessmentResult, classify_risk


HIGHEST_RISK = {
    "sensitiveData": "yes",
    "discriminationRisk": "high",
    "humanOversight": "minimal",
    "safetyImpact": "critical",
}

LOWEST_RISK = {
    "sensitiveData": "no",
    "discriminationRisk": "low",
    "humanOversight": "full",
    "safetyImpact": "minimal",
}


class TestWeightedScore(unittest.TestCase):

    def test_highest_answers_score_85_high(self):
        result = classify_risk(HIGHEST_RISK)
        self.assertEqual(result.risk_score, 85)
        self.assertEqual(result.risk_level, RiskLevel.HIGH)

    def test_lowest_answers_minimal(self):
        result = classify_risk(LOWEST_RISK)
        self.assertEqual(result.risk_score, 16)
        self.assertEqual(result.risk_level, RiskLevel.MINIMAL)

    def test_limited_band(self):
        result = classify_risk({
            "sensitiveData": "limited",
            "discriminationRisk": "medium",
            "humanOversight": "intermittent",
            "safetyImpact": "minimal",
        })
        self.assertEqual(result.risk_score, 42)
        self.assertEqual(result.risk_level, RiskLevel.LIMITED)

    def test_level_always_matches_band(self):
        factors = DEFAULT_SCORING_CONFIG.risk_factors
        for combo in itertools.product(*(sorted(opts) for opts in factors.values())):
            response = dict(zip(factors, combo))
            result = classify_risk(response)
            with self.subTest(response=response):
                self.assertTrue(0 <= result.risk_score <= 100)
                self.assertEqual(result.risk_level.value,
                                 band_for(DEFAULT_SCORING_CONFIG.risk_bands, result.risk_score))

    def test_answers_case_insensitive(self):
        upper = {k: v.upper() for k, v in HIGHEST_RISK.items()}
        self.assertEqual(classify_risk(upper).risk_score, 85)

    def test_input_not_mutated(self):
        response = dict(HIGHEST_RISK, applicationDomain="employment")
        before = dict(response)
        classify_risk(response)
        self.assertEqual(response, before)

    def test_deterministic(self):
        self.assertEqual(classify_risk(HIGHEST_RISK), classify_risk(HIGHEST_RISK))


class TestOverrides(unittest.TestCase):

    def test_prohibited_domain_is_unacceptable(self):
        result = classify_risk(dict(LOWEST_RISK, applicationDomain="social_scoring"))
        self.assertEqual(result.risk_level, RiskLevel.UNACCEPTABLE)
        self.assertEqual(result.risk_score, 100)
        self.assertIn("social_scoring", result.prohibited_practices)

    def test_prohibited_marker_in_description(self):
        result = classify_risk(dict(LOWEST_RISK, description="Uses subliminal cues to steer buyers"))
        self.assertEqual(result.risk_level, RiskLevel.UNACCEPTABLE)

    def test_annex_iii_domain_is_informational(self):
        result = classify_risk(dict(LOWEST_RISK, applicationDomain="employment"))
        self.assertEqual(result.risk_level, RiskLevel.MINIMAL)
        self.assertEqual(result.high_risk_domains, ["employment"])
        self.assertTrue(any("employment" in o for o in result.obligations))


class TestArticle5(unittest.TestCase):

    def assertProhibited(self, response, practice=None):
        result = classify_risk(response)
        self.assertEqual(result.risk_level, RiskLevel.UNACCEPTABLE)
        self.assertEqual(result.risk_score, 100)
        if practice:
            self.assertIn(practice, result.prohibited_practices)

    def test_marker_spellings(self):
        for domain in (
            "cognitive behavioral nudging",
            "citizen rating",
            "real-time biometric identification",
            "facial scraping",
            "facial recognition database",
        ):
            with self.subTest(domain=domain):
                self.assertProhibited(dict(LOWEST_RISK, applicationDomain=domain))

    def test_manipulation_without_information_or_control(self):
        self.assertProhibited(
            dict(LOWEST_RISK, applicationDomain="retail", userInformed="none", autonomyLevel="high"),
            "manipulative_techniques",
        )
        informed = classify_risk(dict(LOWEST_RISK, userInformed="full", autonomyLevel="high"))
        self.assertEqual(informed.risk_level, RiskLevel.MINIMAL)

    def test_scoring_by_government(self):
        self.assertProhibited(
            dict(LOWEST_RISK, sector="Government agency", applicationDomain="benefit scoring"),
            "public_authority_social_scoring",
        )
        private = classify_risk(dict(LOWEST_RISK, sector="retail", applicationDomain="credit scoring"))
        self.assertEqual(private.prohibited_practices, [])

    def test_biometric_categorisation_on_sensitive_traits(self):
        self.assertProhibited(
            dict(LOWEST_RISK, applicationDomain="biometric inference of political opinion"),
            "sensitive_biometric_categorisation",
        )

    def test_remote_biometric_identification(self):
        response = dict(LOWEST_RISK, safetyImpact="critical",
                        applicationDomain="biometric identification in stations",
                        geographicalScope="national")
        self.assertProhibited(response, "remote_biometric_identification")

        for exempt in ({"geographicalScope": "local"}, {"sector": "law enforcement"}):
            with self.subTest(exempt=exempt):
                result = classify_risk(dict(response, **exempt))
                self.assertNotIn("remote_biometric_identification", result.prohibited_practices)
                self.assertEqual(result.risk_score, 33)

    def test_exploitation_of_vulnerable_groups(self):
        self.assertProhibited(
            dict(LOWEST_RISK, applicationDomain="toys for children", discriminationRisk="high"),
            "exploitation_of_vulnerabilities",
        )
        self.assertProhibited(
            dict(LOWEST_RISK, applicationDomain="care for elderly", autonomyLevel="high"),
            "exploitation_of_vulnerabilities",
        )
        low = classify_risk(dict(LOWEST_RISK, applicationDomain="toys for children"))
        self.assertEqual(low.risk_level, RiskLevel.MINIMAL)

    def test_facial_image_scraping(self):
        self.assertProhibited(
            dict(LOWEST_RISK, applicationDomain="facial image scraping from the web"),
            "untargeted_facial_scraping",
        )

    def test_rule_reported_once(self):
        result = classify_risk(dict(LOWEST_RISK, applicationDomain="vulnerable users",
                                    discriminationRisk="high", autonomyLevel="high"))
        self.assertEqual(result.prohibited_practices.count("exploitation_of_vulnerabilities"), 1)

    def test_malformed_rule_rejected(self):
        rule = {"name": "x", "all": [{"field": "sector", "equals": "a", "contains": ["b"]}]}
        with self.assertRaises(ValueError):
            ScoringConfig(prohibited_rules=[rule])


class TestValidation(unittest.TestCase):

    def test_missing_factor_raises(self):
        response = dict(HIGHEST_RISK)
        del response["safetyImpact"]
        with self.assertRaises(ValidationError) as ctx:
            classify_risk(response)
        self.assertEqual(ctx.exception.field, "safetyImpact")

    def test_unknown_answer_raises(self):
        with self.assertRaises(ValidationError) as ctx:
            classify_risk(dict(HIGHEST_RISK, sensitiveData="sometimes"))
        self.assertEqual(ctx.exception.field, "sensitiveData")

    def test_unhashable_answer_raises_validation_error(self):
        with self.assertRaises(ValidationError):
            classify_risk(dict(HIGHEST_RISK, sensitiveData=["yes"]))

    def test_non_mapping_rejected(self):
        with self.assertRaises(ValidationError):
            classify_risk(["yes", "high"])

    def test_zero_policy_scores_unknown_as_zero(self):
        config = ScoringConfig(unknown_answer_policy="zero")
        response = dict(HIGHEST_RISK)
        del response["safetyImpact"]
        result = RiskClassifier(config).classify(response)
        self.assertEqual(result.risk_score, 65)
        self.assertEqual(result.risk_level, RiskLevel.LIMITED)


class TestResultShape(unittest.TestCase):

    def test_to_dict_fields(self):
        d = classify_risk(HIGHEST_RISK).to_dict()
        self.assertEqual(d["riskLevel"], "high")
        self.assertEqual(d["riskScore"], 85)
        self.assertEqual(set(d["timeline"]), {"immediate", "short_term", "long_term"})
        self.assertTrue(d["obligations"])
        self.assertIn("85/100", d["reasoning"])

    def test_from_dict_restores_result(self):
        result = classify_risk(HIGHEST_RISK)
        self.assertEqual(RiskAssessmentResult.from_dict(result.to_dict()), result)

    def test_from_dict_rejects_unknown_level(self):
        with self.assertRaises(ValidationError):
            RiskAssessmentResult.from_dict({"riskLevel": "severe", "riskScore": 10})


if __name__ == "__main__":
    unittest.main()
