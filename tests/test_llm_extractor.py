"""Tests for the LLM draft reader."""

import json
from unittest.mock import MagicMock, Mock, patch

import pytest
from openai import (
    APIConnectionError,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
)

from clm.schemas.domain import ContractReading
from worker.llm_extractor import (
    LLM_MAX_CHARS,
    LLM_MAX_RETRIES,
    LLM_MODEL,
    LLM_TIMEOUT_S,
    LLMExtractError,
    _get_client,
    _truncate_text,
    extract_contract_reading,
)


def make_valid_response_data():
    """Create a valid reading as the model would return it."""
    return {
        "titulo_contrato": "Contrato de Prestacao de Servicos de Manutencao",
        "tipo_contrato": "prestacao_servicos",
        "lei_aplicavel": "Lei portuguesa",
        "parte_a_nome_legal": "Acme, Lda.",
        "parte_b_nome_legal": "Widget, S.A.",
        "data_inicio_vigencia": "2025-01-01",
        "data_termo": "2025-12-31",
        "tipo_renovacao": "automatica",
        "renovacao_periodo_meses": 12,
        "aviso_previo_nao_renovacao_dias": 60,
        "tratamento_dados_pessoais": True,
        "classificacao_juridica": {"tipo_principal": "servicos", "etiquetas": ["manutencao"]},
        "clausulas_importantes": ["Penalidade por atraso de 1% ao dia"],
        "riscos_identificados": [],
        "confianca": 0.85,
    }


def create_mock_response(data):
    """Create a mock OpenAI chat completion response."""
    mock_message = Mock()
    mock_message.content = data if isinstance(data, str) or data is None else json.dumps(data)

    mock_choice = Mock()
    mock_choice.message = mock_message

    mock_response = Mock()
    mock_response.choices = [mock_choice]

    return mock_response


def create_mock_client(response_data=None, side_effect=None):
    """Create a mock OpenAI client."""
    mock_client = MagicMock()

    if side_effect:
        mock_client.chat.completions.create.side_effect = side_effect
    elif response_data is not None:
        mock_client.chat.completions.create.return_value = create_mock_response(response_data)
    else:
        mock_client.chat.completions.create.return_value = create_mock_response(make_valid_response_data())

    return mock_client


@pytest.fixture(autouse=True)
def no_retry_wait():
    """Skip tenacity's backoff sleeps."""
    with patch("tenacity.nap.time.sleep"):
        yield


class TestConfiguration:
    def test_defaults(self):
        assert LLM_MODEL == "gpt-4o-mini"
        assert LLM_MAX_CHARS == 200000
        assert LLM_TIMEOUT_S == 60
        assert LLM_MAX_RETRIES == 3


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert _truncate_text("Short text", 100) == "Short text"

    def test_long_text_truncated(self):
        assert len(_truncate_text("x" * 200, 100)) <= 100

    def test_truncate_preserves_sentence_boundary(self):
        result = _truncate_text("First sentence. Second sentence. Third sentence.", 35)
        assert result.endswith(".")


class TestExtractContractReading:
    def test_returns_reading(self):
        result = extract_contract_reading("Texto do contrato", client=create_mock_client())
        assert isinstance(result, ContractReading)
        assert result.tipo_contrato == "prestacao_servicos"
        assert result.aviso_previo_nao_renovacao_dias == 60
        assert result.classificacao_juridica.etiquetas == ["manutencao"]
        assert result.confianca == 0.85

    def test_payload_excludes_confidence(self):
        result = extract_contract_reading("Texto do contrato", client=create_mock_client())
        payload = result.to_payload()
        assert "confianca" not in payload
        assert payload["data_termo"] == "2025-12-31"

    @pytest.mark.parametrize("text", ["", "   \n\t  ", None])
    def test_empty_text(self, text):
        with pytest.raises(LLMExtractError, match="Empty text provided"):
            extract_contract_reading(text)

    def test_request_uses_structured_output(self):
        mock_client = create_mock_client()
        extract_contract_reading("Texto do contrato", client=mock_client)

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == LLM_MODEL
        assert kwargs["response_format"]["type"] == "json_schema"
        assert kwargs["response_format"]["json_schema"]["name"] == "contract_reading"
        assert kwargs["messages"][0]["role"] == "system"
        assert "Texto do contrato" in kwargs["messages"][1]["content"]

    def test_long_text_is_truncated(self):
        mock_client = create_mock_client()
        extract_contract_reading("x" * (LLM_MAX_CHARS + 10000), client=mock_client)

        user_content = mock_client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert len(user_content) <= LLM_MAX_CHARS + 100


class TestAPIErrors:
    def test_authentication_error_not_retried(self):
        mock_client = create_mock_client(
            side_effect=AuthenticationError(message="Invalid API key", response=Mock(status_code=401), body=None)
        )
        with pytest.raises(LLMExtractError, match="Non-retryable API error"):
            extract_contract_reading("Test text", client=mock_client)
        assert mock_client.chat.completions.create.call_count == 1

    def test_bad_request_error_not_retried(self):
        mock_client = create_mock_client(
            side_effect=BadRequestError(message="Bad request", response=Mock(status_code=400), body=None)
        )
        with pytest.raises(LLMExtractError, match="Non-retryable API error"):
            extract_contract_reading("Test text", client=mock_client)
        assert mock_client.chat.completions.create.call_count == 1

    def test_rate_limit_error_retried(self):
        mock_client = create_mock_client(
            side_effect=RateLimitError(message="Rate limited", response=Mock(status_code=429), body=None)
        )
        with pytest.raises(LLMExtractError, match="API error after"):
            extract_contract_reading("Test text", client=mock_client)
        assert mock_client.chat.completions.create.call_count == LLM_MAX_RETRIES

    def test_connection_error_retried(self):
        mock_client = create_mock_client(side_effect=APIConnectionError(message="Connection failed", request=Mock()))
        with pytest.raises(LLMExtractError, match="API error after"):
            extract_contract_reading("Test text", client=mock_client)
        assert mock_client.chat.completions.create.call_count == LLM_MAX_RETRIES

    def test_retry_succeeds_on_second_attempt(self):
        mock_client = create_mock_client()
        mock_client.chat.completions.create.side_effect = [
            RateLimitError(message="Rate limited", response=Mock(status_code=429), body=None),
            create_mock_response(make_valid_response_data()),
        ]
        result = extract_contract_reading("Test text", client=mock_client)
        assert isinstance(result, ContractReading)
        assert mock_client.chat.completions.create.call_count == 2


class TestResponseErrors:
    @pytest.mark.parametrize("content", [None, ""])
    def test_empty_response(self, content):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = create_mock_response(content)
        with pytest.raises(LLMExtractError, match="Empty response"):
            extract_contract_reading("Test text", client=mock_client)

    def test_invalid_json(self):
        mock_client = create_mock_client(response_data="not valid json {{")
        with pytest.raises(LLMExtractError, match="Invalid JSON"):
            extract_contract_reading("Test text", client=mock_client)

    def test_missing_confidence(self):
        data = make_valid_response_data()
        del data["confianca"]
        with pytest.raises(LLMExtractError, match="does not match ContractReading"):
            extract_contract_reading("Test text", client=create_mock_client(response_data=data))


class TestClientInjection:
    @patch("worker.llm_extractor._get_client")
    def test_uses_default_client_when_none_provided(self, mock_get_client):
        mock_client = create_mock_client()
        mock_get_client.return_value = mock_client

        extract_contract_reading("Test text")

        mock_get_client.assert_called_once()
        mock_client.chat.completions.create.assert_called_once()

    @patch("worker.llm_extractor._client", None)
    @patch("worker.llm_extractor.OpenAI")
    def test_creates_client_on_first_call(self, mock_openai_class):
        mock_client = Mock()
        mock_openai_class.return_value = mock_client

        assert _get_client() == mock_client
        mock_openai_class.assert_called_once_with(timeout=LLM_TIMEOUT_S)
