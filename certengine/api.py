"""
HTTP surface for the certification engine.

Error mapping:
    ValidationError / IncompleteResponseError -> 422
    RecordNotFoundError                       -> 404
    SerialCollisionError                      -> 409 (retryable)
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request

from . import __version__
from .certificate import AiSystemRecord
from .config import ENV, LOG_JSON, LOG_LEVEL, DB_PATH, is_production, validate_config
from .engine import CertificationEngine
from .errors import (
    CertEngineError,
    IncompleteResponseError,
    RecordNotFoundError,
    SerialCollisionError,
    ValidationError,
)
from .keys import get_key_provider
from .logging_config import configure_logging, set_request_id
from .models import (
    CertificateIssueRequest,
    CreateAiSystemRequest,
    MaturityAssessmentRequest,
    RiskAssessmentRequest,
    VerifyCertificateRequest,
)
from .recommendations import get_text_generator
from .storage import SqliteRecordStore

logger = logging.getLogger(__name__)


def _http_error(e: CertEngineError) -> HTTPException:
    if isinstance(e, IncompleteResponseError):
        return HTTPException(422, {"error": "INCOMPLETE_RESPONSES", "field": e.field,
                                   "message": e.message, "missing": e.missing})
    if isinstance(e, ValidationError):
        return HTTPException(422, {"error": "VALIDATION_ERROR", "field": e.field, "message": e.message})
    if isinstance(e, RecordNotFoundError):
        return HTTPException(404, {"error": "NOT_FOUND", "kind": e.kind, "key": e.key})
    if isinstance(e, SerialCollisionError):
        return HTTPException(409, {"error": "SERIAL_COLLISION", "retryable": True,
                                   "certificate_number": e.certificate_number})
    return HTTPException(500, {"error": "ENGINE_ERROR", "message": str(e)})


def create_app(engine: Optional[CertificationEngine] = None) -> FastAPI:
    """
    Build the FastAPI app. Without an engine, one is created at startup
    from environment settings with a SQLite store at CERTENGINE_DB_PATH.
    """
    app = FastAPI(title="EU AI Act Certification Engine", version=__version__)
    app.state.engine = engine

    @app.on_event("startup")
    def _startup():
        if app.state.engine is None:
            configure_logging(level=LOG_LEVEL, json_format=LOG_JSON)
            app.state.engine = CertificationEngine(
                store=SqliteRecordStore(DB_PATH),
                text_generator=get_text_generator(),
                key_provider=get_key_provider(),
            )
            logger.info("Certification engine ready (db=%s, sealing=%s)",
                        DB_PATH, app.state.engine.key_provider is not None)
            if is_production() and app.state.engine.key_provider is None:
                logger.warning("SIGNING_KEY_PATH is not set; certificates will be issued unsealed")

    def _engine() -> CertificationEngine:
        if app.state.engine is None:
            raise HTTPException(503, "ENGINE_NOT_READY")
        return app.state.engine

    def _store():
        store = _engine().store
        if store is None:
            raise _http_error(ValidationError("store", "no record store configured"))
        return store

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        rid = set_request_id(request.headers.get("X-Request-ID") or None)
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response

    @app.get("/health")
    def health():
        eng = _engine()
        return {
            "status": "ok",
            "version": __version__,
            "env": ENV,
            "config_hash": eng.config.get_hash(),
            "framework_hash": eng.framework.get_hash(),
            "sealing": eng.key_provider is not None,
            "files": validate_config(),
        }

    @app.get("/framework")
    def framework():
        eng = _engine()
        body = eng.framework.to_dict()
        body["hash"] = eng.framework.get_hash()
        return body

    @app.post("/ai-systems")
    def create_ai_system(req: CreateAiSystemRequest):
        store = _store()
        try:
            system = store.create_ai_system(req.user_id, AiSystemRecord(
                id=None,
                name=req.system.name,
                compliance_score=req.system.compliance_score,
                sector=req.system.sector,
                description=req.system.description,
            ))
        except CertEngineError as e:
            raise _http_error(e)
        return system.to_dict()

    @app.post("/assessments/risk")
    def assess_risk(req: RiskAssessmentRequest):
        try:
            outcome = _engine().submit_risk_assessment(
                user_id=req.user_id,
                organization_name=req.organization_name,
                response=req.responses,
                ai_system_id=req.ai_system_id,
                auto_issue=req.auto_issue,
            )
        except CertEngineError as e:
            raise _http_error(e)
        return outcome.to_dict()

    @app.post("/assessments/maturity")
    def assess_maturity(req: MaturityAssessmentRequest):
        try:
            outcome = _engine().submit_maturity_assessment(
                user_id=req.user_id,
                organization_name=req.organization_name,
                domain_responses=req.responses,
                auto_issue=req.auto_issue,
            )
        except CertEngineError as e:
            raise _http_error(e)
        return outcome.to_dict()

    @app.post("/certificates")
    def issue(req: CertificateIssueRequest):
        eng = _engine()
        try:
            request = eng.build_request(
                user_id=req.user_id,
                organization_name=req.organization_name,
                certificate_type=req.certificate_type,
                ai_system_id=req.ai_system_id,
                risk_assessment_id=req.risk_assessment_id,
                maturity_assessment_id=req.maturity_assessment_id,
                language=req.language,
            )
            record = eng.issue_certificate(request)
        except CertEngineError as e:
            raise _http_error(e)
        return record.to_dict()

    @app.get("/certificates/{certificate_number}")
    def get_certificate(certificate_number: str):
        stored = _store().get_certificate_json(certificate_number)
        if stored is None:
            raise HTTPException(404, {"error": "NOT_FOUND", "kind": "certificate",
                                      "key": certificate_number})
        return stored

    @app.get("/certificates/{certificate_number}/verify")
    def verify_stored(certificate_number: str):
        eng = _engine()
        stored = _store().get_certificate_json(certificate_number)
        if stored is None:
            raise HTTPException(404, {"error": "NOT_FOUND", "kind": "certificate",
                                      "key": certificate_number})
        return eng.verify(stored).to_dict()

    @app.post("/certificates/verify")
    def verify_presented(req: VerifyCertificateRequest):
        return _engine().verify(req.certificate).to_dict()

    return app


app = create_app()
