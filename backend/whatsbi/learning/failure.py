"""
Failure Response Classifier.

Inspects the model's final natural-language answer, not the mechanical
execution outcome: a query can run cleanly and the model can still answer
"não encontrei". The phrase lists live in ``FailurePhrases`` so they can be
tuned or replaced without touching the decision functions.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

EARLY_WINDOW_CHARS = 300

REASON_EXECUTION_ERROR = "execution_error"
REASON_NOT_UNDERSTOOD = "not_understood"
REASON_INCORRECT_DATA = "incorrect_data"
REASON_ENTITY_NOT_FOUND = "entity_not_found"
REASON_NO_DATA = "no_data"
REASON_EVASIVE = "evasive_response"
REASON_UNKNOWN = "unknown"

NUMERIC_PATTERNS: Tuple[str, ...] = (
    r"r\$\s*[\d.,]+",
    r"\d{1,3}(\.\d{3})+(,\d{2})?",
)


@dataclass(frozen=True)
class FailurePhrases:
    """Lowercase phrase lists driving the classifier."""

    strong: Tuple[str, ...] = (
        "não encontrei",
        "não consegui encontrar",
        "não tenho acesso aos dados",
        "não possuo acesso",
        "não foi possível consultar",
        "não tenho informações sobre",
        "não tenho dados sobre",
        "dados não disponíveis",
        "informação não disponível",
        "não localizei",
        "não há dados disponíveis",
        "não sei responder",
        "não posso responder a essa",
        "não consegui processar sua",
        "não foi possível encontrar dados",
        "não tenho essa informação disponível",
        "não entendi",
        "não existe",
        "parece representar",
        "pode não estar correto",
    )
    evasion: Tuple[str, ...] = (
        "posso analisar:",
        "posso te ajudar com:",
        "você quis dizer",
        "voce quis dizer",
        "gostaria de saber sobre",
        "poderia especificar",
        "poderia reformular",
    )
    self_doubt: Tuple[str, ...] = (
        "parece representar",
        "pode não estar correto",
        "pode não estar correta",
        "não tenho certeza",
    )
    not_understood: Tuple[str, ...] = (
        "não entendi",
        "não compreendi",
        "não sei responder",
        "poderia reformular",
    )
    entity_not_found: Tuple[str, ...] = (
        "não existe",
        "não encontrei a medida",
        "não encontrei a coluna",
        "não encontrei a tabela",
        "não localizei",
    )
    no_data: Tuple[str, ...] = (
        "não encontrei",
        "sem dados",
        "não há dados",
        "dados não disponíveis",
        "informação não disponível",
        "nenhum resultado",
    )


DEFAULT_PHRASES = FailurePhrases()

_NUMERIC = [re.compile(pattern) for pattern in NUMERIC_PATTERNS]


def first_position(text: str, phrases: Tuple[str, ...]) -> Optional[int]:
    """Earliest index at which any phrase occurs, or None."""
    positions = [text.find(phrase) for phrase in phrases]
    found = [pos for pos in positions if pos >= 0]
    return min(found) if found else None


def contains_any(text: str, phrases: Tuple[str, ...]) -> bool:
    return any(phrase in text for phrase in phrases)


def has_numeric_content(text: str) -> bool:
    """Formatted currency ("R$ 1.234,56") or thousands-grouped numbers."""
    return any(pattern.search(text) for pattern in _NUMERIC)


def is_failure_response(answer: str, phrases: FailurePhrases = DEFAULT_PHRASES) -> bool:
    normalized = answer.lower()

    strong_pos = first_position(normalized, phrases.strong)
    has_evasion = contains_any(normalized, phrases.evasion)
    if strong_pos is None and not has_evasion:
        return False

    if strong_pos is not None and strong_pos < EARLY_WINDOW_CHARS:
        return True

    numeric = has_numeric_content(normalized)

    if strong_pos is None:
        # Only evasion: tolerated when the answer carries real figures
        return not numeric

    if contains_any(normalized, phrases.self_doubt):
        return True
    if numeric:
        return False
    return True


def identify_failure_reason(
    answer: str,
    had_execution_error: bool,
    phrases: FailurePhrases = DEFAULT_PHRASES,
) -> str:
    if had_execution_error:
        return REASON_EXECUTION_ERROR

    normalized = answer.lower()
    if contains_any(normalized, phrases.not_understood):
        return REASON_NOT_UNDERSTOOD
    if contains_any(normalized, phrases.self_doubt):
        return REASON_INCORRECT_DATA
    if contains_any(normalized, phrases.entity_not_found):
        return REASON_ENTITY_NOT_FOUND
    if contains_any(normalized, phrases.no_data):
        return REASON_NO_DATA
    if contains_any(normalized, phrases.evasion):
        return REASON_EVASIVE
    return REASON_UNKNOWN
