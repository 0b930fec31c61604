"""
Prompt construction for the query assistant.

The system prompt is layered: fixed rules, then the dataset's model
documentation, then queries that already worked for this kind of question.
"""

from datetime import datetime
from typing import List, Optional

EXECUTE_QUERY_TOOL_NAME = "execute_query"

EXECUTE_QUERY_TOOL = {
    "name": EXECUTE_QUERY_TOOL_NAME,
    "description": "Executa uma query no modelo de dados do sistema selecionado e retorna as linhas.",
    "input_schema": {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Query a executar (ex.: DAX)"}
        },
        "required": ["query"],
    },
}

MAX_MODEL_CONTEXT_CHARS = 10000

BASE_RULES = """Você é um Assistente de Análise de Dados via WhatsApp.

# REGRAS FUNDAMENTAIS

1. NUNCA invente valores ou dados, SEMPRE use a ferramenta execute_query
2. Use EXATAMENTE os nomes de tabelas, colunas e medidas documentados
3. Se não conseguir buscar os dados, admita claramente

# PROCESSO

1. Identifique métrica, período, agrupamento e filtros da pergunta
2. Procure uma query de referência parecida e adapte-a
3. Execute com execute_query; se der erro, simplifique a query e tente de novo
4. Responda em português, de forma objetiva, com no máximo 1000 caracteres
5. Formate valores monetários como R$ 1.234,56"""

WORKING_QUERIES_HEADER = "# QUERIES QUE FUNCIONARAM PARA PERGUNTAS SIMILARES"


def format_working_queries(queries: List[str]) -> str:
    if not queries:
        return ""
    numbered = "\n".join(f"{i}. {query}" for i, query in enumerate(queries, start=1))
    return f"{WORKING_QUERIES_HEADER}\nUse estas queries como referência:\n{numbered}"


def build_system_prompt(
    model_context: Optional[str] = None,
    working_queries: Optional[List[str]] = None,
    user_name: Optional[str] = None,
    dataset_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Assemble the system prompt for one question.

    Args:
        model_context: Documentation of the dataset's model, truncated
        working_queries: Previously successful queries for the same intent
        user_name: Name to address the user by
        dataset_name: Display name of the selected system
        now: Reference date for relative periods ("este mês")
    """
    now = now or datetime.now()
    sections = [BASE_RULES]

    header = [f"Data atual: {now.strftime('%d/%m/%Y')}"]
    if dataset_name:
        header.append(f"Sistema selecionado: {dataset_name}")
    if user_name:
        header.append(f"Usuário: {user_name}")
    sections.append("# CONTEXTO\n" + "\n".join(header))

    if model_context:
        sections.append("# DOCUMENTAÇÃO DO MODELO\n" + model_context[:MAX_MODEL_CONTEXT_CHARS])

    learned = format_working_queries(working_queries or [])
    if learned:
        sections.append(learned)

    return "\n\n".join(sections)
