#!/usr/bin/env python3
"""
certengine Command Line Interface

Usage:
    certengine classify --responses <file>
    certengine score --responses <file> [--framework <file>]
    certengine issue --organization <name> [--risk <file>] [--maturity <file>] [--system <file>]
    certengine verify --certificate <file> [--key-file <file>] [--require-seal]
    certengine hash --certificate <file>
    certengine keygen --output <file>
"""

import argparse
import json
import sys
from datetime import datetime


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def emit(data: dict, output: str = None):
    if output:
        save_json(data, output)
        print(f"Saved to: {output}", file=sys.stderr)
    else:
        print(json.dumps(data, indent=2, ensure_ascii=False))


def _engine(args):
    from certengine import CertificationEngine, load_framework
    from certengine.keys import get_key_provider

    framework = load_framework(args.framework) if getattr(args, "framework", None) else None
    key_file = getattr(args, "key_file", None)
    return CertificationEngine(framework=framework, key_provider=get_key_provider(key_file))


def cmd_classify(args):
    """Classify a risk questionnaire."""
    from certengine import ValidationError

    try:
        result = _engine(args).classify_risk(load_json(args.responses))
    except ValidationError as e:
        print(f"✗ Invalid responses: {e}", file=sys.stderr)
        return 2

    emit(result.to_dict(), args.output)
    print(f"\nRisk level: {result.risk_level.value} ({result.risk_score}/100)", file=sys.stderr)
    return 0


def cmd_score(args):
    """Score a maturity questionnaire."""
    from certengine import IncompleteResponseError, ValidationError

    try:
        result = _engine(args).score_maturity(load_json(args.responses))
    except IncompleteResponseError as e:
        print(f"✗ Incomplete responses ({e.answered}/{e.expected})", file=sys.stderr)
        for qid in e.missing:
            print(f"  - {qid}", file=sys.stderr)
        return 2
    except ValidationError as e:
        print(f"✗ Invalid responses: {e}", file=sys.stderr)
        return 2

    emit(result.to_dict(), args.output)
    print(f"\nMaturity: {result.overall_maturity.value} ({result.overall_score}/100)", file=sys.stderr)
    return 0


def cmd_issue(args):
    """Issue a certificate from stored assessment results."""
    from certengine import (
        AiSystemRecord,
        CertificateRequest,
        MaturityAssessmentResult,
        RiskAssessmentResult,
        ValidationError,
        determine_certificate_type,
    )

    try:
        risk = RiskAssessmentResult.from_dict(load_json(args.risk)) if args.risk else None
        maturity = MaturityAssessmentResult.from_dict(load_json(args.maturity)) if args.maturity else None
        system = AiSystemRecord.from_dict(load_json(args.system)) if args.system else None

        engine = _engine(args)
        record = engine.issue_certificate(CertificateRequest(
            user_id=args.user,
            organization_name=args.organization,
            certificate_type=args.type or determine_certificate_type(system, risk, maturity),
            ai_system=system,
            risk_assessment=risk,
            maturity_assessment=maturity,
            language=args.language,
        ))
    except ValidationError as e:
        print(f"✗ Cannot issue certificate: {e}", file=sys.stderr)
        return 2

    emit(record.to_dict(), args.output)
    print(f"\n✓ Issued {record.certificate_number} "
          f"({record.compliance_details.overall_status.value}, {record.compliance_score}/100)",
          file=sys.stderr)
    return 0


def cmd_verify(args):
    """Verify a certificate."""
    from certengine import CertificateVerifier

    certificate = load_json(args.certificate)
    trusted = {}
    if args.key_file:
        key = load_json(args.key_file)
        trusted[key["kid"]] = key["public_key_b64"]

    result = CertificateVerifier(trusted_keys=trusted, require_seal=args.require_seal).verify(certificate)

    if result.is_valid():
        print(f"✓ {result.outcome.value}: {result.certificate_number}")
        return 0
    else:
        print(f"✗ {result.outcome.value}: {result.reason}")
        if result.details:
            print(json.dumps(result.details, indent=2))
        return 1


def cmd_hash(args):
    """Show the canonical hash input and digest of a certificate."""
    from certengine import certificate_hash_input, sha256_hex

    data = load_json(args.certificate)
    try:
        payload = certificate_hash_input(
            certificate_number=data["certificateNumber"],
            organization_name=data["organizationName"],
            system_name=data.get("systemName"),
            issued_at=data["issuedAt"],
            compliance_score=data["complianceScore"],
        )
    except (KeyError, ValueError, TypeError) as e:
        print(f"✗ Malformed certificate: {e}", file=sys.stderr)
        return 2

    print(f"canonical: {payload.decode('utf-8')}")
    print(f"sha256: {sha256_hex(payload)}")
    return 0


def cmd_keygen(args):
    """Generate an Ed25519 seal key file."""
    from certengine.keys import write_key_file

    kid = args.key_id or f"certengine-seal-{datetime.now().strftime('%Y%m%d')}-001"
    provider = write_key_file(args.output, kid)
    print(f"Key file saved to: {args.output}", file=sys.stderr)
    print(json.dumps({"kid": kid, "public_key_b64": provider.public_keys()[kid]}, indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="EU AI Act certification engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  certengine classify -r risk_responses.json
  certengine score -r maturity_responses.json
  certengine issue -O "Acme SAS" --risk risk.json --maturity maturity.json -o cert.json
  certengine verify -c cert.json
  certengine hash -c cert.json
  certengine keygen -o secrets/seal_key.json
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # classify
    classify_parser = subparsers.add_parser("classify", help="Classify AI system risk")
    classify_parser.add_argument("-r", "--responses", required=True, help="Risk questionnaire JSON file")
    classify_parser.add_argument("-o", "--output", help="Output file for result")

    # score
    score_parser = subparsers.add_parser("score", help="Score organisational maturity")
    score_parser.add_argument("-r", "--responses", required=True, help="Domain responses JSON file")
    score_parser.add_argument("-f", "--framework", help="Framework JSON file")
    score_parser.add_argument("-o", "--output", help="Output file for result")

    # issue
    issue_parser = subparsers.add_parser("issue", help="Issue a certificate")
    issue_parser.add_argument("-O", "--organization", required=True, help="Organisation name")
    issue_parser.add_argument("-u", "--user", default="cli", help="Requesting user id")
    issue_parser.add_argument("-t", "--type", help="Certificate type (default: inferred)")
    issue_parser.add_argument("--risk", help="Risk assessment result JSON file")
    issue_parser.add_argument("--maturity", help="Maturity assessment result JSON file")
    issue_parser.add_argument("--system", help="AI system JSON file")
    issue_parser.add_argument("-l", "--language", default="en", help="Recommendation language")
    issue_parser.add_argument("-k", "--key-file", help="Seal key file")
    issue_parser.add_argument("-o", "--output", help="Output file for certificate")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a certificate")
    verify_parser.add_argument("-c", "--certificate", required=True, help="Certificate JSON file")
    verify_parser.add_argument("-k", "--key-file", help="Seal key file holding the public key")
    verify_parser.add_argument("--require-seal", action="store_true", help="Reject unsealed certificates")

    # hash
    hash_parser = subparsers.add_parser("hash", help="Compute certificate hash")
    hash_parser.add_argument("-c", "--certificate", required=True, help="Certificate JSON file")

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate seal key")
    keygen_parser.add_argument("-o", "--output", required=True, help="Output key file")
    keygen_parser.add_argument("-k", "--key-id", help="Key identifier")

    args = parser.parse_args()

    commands = {
        "classify": cmd_classify,
        "score": cmd_score,
        "issue": cmd_issue,
        "verify": cmd_verify,
        "hash": cmd_hash,
        "keygen": cmd_keygen,
    }
    if args.command in commands:
        sys.exit(commands[args.command](args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
