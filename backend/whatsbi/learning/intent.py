"""
Question intent - a coarse label for what kind of question was asked.

Learned queries are grouped by (dataset, intent); the label only has to be
stable for the same kind of question, not precise.
"""

import re
import unicodedata
from typing import List, Tuple

DEFAULT_INTENT = "outros"

# First matching pattern wins
INTENT_PATTERNS: List[Tuple[str, str]] = [
    (r"faturamento.*(filial|loja|unidade)", "faturamento_filial"),
    (r"faturamento.*(vendedor|garcom|funcionario)", "faturamento_vendedor"),
    (r"faturamento.*(produto|item)", "faturamento_produto"),
    (r"faturamento|faturou|receita total|vendeu quanto", "faturamento_total"),
    (r"vendas?.*(filial|loja)", "faturamento_filial"),
    (r"vendas?.*(vendedor|garcom|funcionario)", "faturamento_vendedor"),
    (r"vendas?.*(produto|item)", "faturamento_produto"),
    (r"top.*(vendedor|garcom|funcionario)|melhor vendedor|quem (mais )?vendeu", "top_vendedores"),
    (r"top.*(produto|item)|produto.*(mais|melhor)", "top_produtos"),
    (r"top.*(filial|loja)|filial.*(mais|melhor)", "top_filiais"),
    (r"ticket.*medio", "ticket_medio"),
    (r"margem|lucro", "margem"),
    (r"cmv|custo", "cmv"),
    (r"contas?.*(pagar|vencer)|a pagar", "contas_pagar"),
    (r"contas?.*receber|a receber", "contas_receber"),
    (r"saldo|caixa|banco", "saldo"),
]

_COMPILED = [(re.compile(pattern), intent) for pattern, intent in INTENT_PATTERNS]


def normalize_text(text: str) -> str:
    """Lowercase and strip accents ("Médio" -> "medio")."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def identify_question_intent(question: str) -> str:
    normalized = normalize_text(question)
    for pattern, intent in _COMPILED:
        if pattern.search(normalized):
            return intent
    return DEFAULT_INTENT
