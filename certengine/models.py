from pydantic import BaseModel, Field
from typing import Dict, Any, Optional


class AiSystemIn(BaseModel):
    name: str = Field(min_length=1)
    sector: Optional[str] = None
    description: Optional[str] = None
    compliance_score: Optional[int] = Field(default=None, ge=0, le=100)


class RiskAssessmentRequest(BaseModel):
    user_id: str = Field(min_length=1)
    organization_name: str = Field(min_length=1)
    ai_system_id: Optional[str] = None
    responses: Dict[str, Any]
    auto_issue: bool = True


class MaturityAssessmentRequest(BaseModel):
    user_id: str = Field(min_length=1)
    organization_name: str = Field(min_length=1)
    responses: Dict[str, Dict[str, Any]]
    auto_issue: bool = True


class CertificateIssueRequest(BaseModel):
    user_id: str = Field(min_length=1)
    organization_name: str = Field(min_length=1)
    certificate_type: Optional[str] = None
    ai_system_id: Optional[str] = None
    risk_assessment_id: Optional[str] = None
    maturity_assessment_id: Optional[str] = None
    language: Optional[str] = None


class CreateAiSystemRequest(BaseModel):
    user_id: str = Field(min_length=1)
    system: AiSystemIn


class VerifyCertificateRequest(BaseModel):
    certificate: Dict[str, Any]
