"""Domain models for a structured reading of a contract document.

Field names follow the contract taxonomy shared with the CCA agent, so a
draft reading and a canonical reading of the same document diff key by key.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class LegalClassification(BaseModel):
    """Legal classification of the contract."""

    tipo_principal: Optional[str] = None
    etiquetas: list[str] = Field(default_factory=list)


class ContractReading(BaseModel):
    """Complete reading of a contract document."""

    # Identification
    titulo_contrato: Optional[str] = None
    tipo_contrato: Optional[str] = None
    objeto_resumido: Optional[str] = None
    lei_aplicavel: Optional[str] = None
    foro_arbitragem: Optional[str] = None

    # Parties
    parte_a_nome_legal: Optional[str] = None
    parte_a_nif: Optional[str] = None
    parte_b_nome_legal: Optional[str] = None
    parte_b_nif: Optional[str] = None

    # Dates, duration and renewal (ISO format YYYY-MM-DD)
    data_inicio_vigencia: Optional[str] = None
    data_termo: Optional[str] = None
    tipo_duracao: Optional[str] = None
    tipo_renovacao: Optional[str] = None
    renovacao_periodo_meses: Optional[int] = None
    aviso_previo_nao_renovacao_dias: Optional[int] = None
    prazos_denuncia_rescisao: Optional[str] = None

    # Economics
    valor_total_estimado: Optional[float] = None
    moeda: Optional[str] = None

    # Data protection
    tratamento_dados_pessoais: Optional[bool] = None
    existe_dpa_anexo_rgpd: Optional[bool] = None
    transferencia_internacional: Optional[bool] = None

    classificacao_juridica: Optional[LegalClassification] = None
    clausulas_importantes: list[str] = Field(default_factory=list)
    riscos_identificados: list[str] = Field(default_factory=list)

    confianca: float = Field(ge=0.0, le=1.0)

    def to_payload(self) -> dict[str, Any]:
        """Field path payload for the validation pipeline (confidence travels separately)."""
        return self.model_dump(exclude={"confianca"})
