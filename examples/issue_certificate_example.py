#!/usr/bin/env python3
"""
certengine Example - Assessment to Verified Certificate

Walks through a complete flow:
1. Classify an AI system's risk
2. Score the organisation's maturity
3. Issue a sealed compliance summary certificate
4. Verify it, then show that tampering is detected

Run with: python examples/issue_certificate_example.py
"""

import json
from dataclasses import replace

from certengine import (
    CertificateRequest,
    CertificateVerifier,
    CertificationEngine,
    StaticKeyProvider,
    create_positive_ai_framework,
    determine_certificate_type,
    verify_certificate,
)


def full_maturity_responses(value: int):
    """Answer every framework question with the same Likert value."""
    framework = create_positive_ai_framework()
    return {
        domain.name: {q.id: value for q in domain.questions}
        for domain in framework.domains
    }


def main():
    print("=" * 60)
    print("EU AI Act Certification Example")
    print("=" * 60)

    keys = StaticKeyProvider.generate("example-seal-001")
    engine = CertificationEngine(key_provider=keys)

    # Step 1: Risk
    print("\n[1] Classifying risk")
    risk = engine.classify_risk({
        "sensitiveData": "yes",
        "discriminationRisk": "high",
        "humanOversight": "intermittent",
        "safetyImpact": "significant",
        "applicationDomain": "employment",
    })
    print(f"    Risk level: {risk.risk_level.value} ({risk.risk_score}/100)")
    for obligation in risk.obligations:
        print(f"    - {obligation}")

    # Step 2: Maturity
    print("\n[2] Scoring maturity")
    maturity = engine.score_maturity(full_maturity_responses(4))
    print(f"    Maturity: {maturity.overall_maturity.value} ({maturity.overall_score}/100)")
    for item in maturity.action_plan:
        print(f"    - [{item.priority.value}] {item.domain}: {item.action} ({item.timeline})")

    # Step 3: Issue
    print("\n[3] Issuing certificate")
    record = engine.issue_certificate(CertificateRequest(
        user_id="example-user",
        organization_name="Acme SAS",
        certificate_type=determine_certificate_type(None, risk, maturity),
        risk_assessment=risk,
        maturity_assessment=maturity,
    ))
    cert = record.to_dict()
    print(json.dumps(cert, indent=2, ensure_ascii=False))

    # Step 4: Verify
    print("\n[4] Verifying")
    verifier = CertificateVerifier(trusted_keys=keys.public_keys(), require_seal=True)
    result = verifier.verify(cert)
    print(f"    Presented certificate: {result.outcome.value}")

    tampered = replace(record, compliance_score=100)
    print(f"    Score raised to 100:   valid={verify_certificate(tampered)}")

    print("\n" + "=" * 60)
    print("Example complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
