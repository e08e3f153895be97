"""
Renderização dos templates de mensagem.

Sintaxe suportada:
    {{variavel}}                    substituída pelo valor (chaves ausentes ficam como estão)
    {{#if variavel}}...{{/if}}      conteúdo mantido só se a variável tiver valor (sem aninhamento)
"""

import re

ALLOWED_VARIABLES = (
    "name",
    "church_name",
    "amount",
    "due_date",
    "paid_at",
    "payment_link",
    "transaction_id",
    "user_name",
)

VARIABLE_RE = re.compile(r"\{\{(\w+)\}\}")
CONDITIONAL_RE = re.compile(r"\{\{#if\s+(\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)
TAG_RE = re.compile(r"\{\{#if\s+(\w+)\}\}|\{\{/if\}\}")


def _has_value(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    return bool(value)


def process_template(template: str, variables: dict) -> str:
    if not template:
        return ""

    variables = variables or {}

    # Condicionais primeiro: valores substituídos nunca são interpretados como sintaxe
    def render_block(match):
        return match.group(2) if _has_value(variables.get(match.group(1))) else ""

    processed = CONDITIONAL_RE.sub(render_block, template)

    def render_variable(match):
        value = variables.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return VARIABLE_RE.sub(render_variable, processed)


def validate_template(template: str) -> dict:
    """
    Valida um template sem levantar exceções.

    Retorna {"is_valid": bool, "errors": [...]}.
    """
    errors = []
    template = template or ""

    depth = 0
    balanced = True
    nested = False
    for match in TAG_RE.finditer(template):
        if match.group(1) is not None:
            depth += 1
            if depth > 1:
                nested = True
        else:
            depth -= 1
            if depth < 0:
                balanced = False
                depth = 0
    if depth != 0:
        balanced = False

    if not balanced:
        errors.append("Tags condicionais não estão balanceadas")
    if nested:
        errors.append("Blocos condicionais aninhados não são suportados")

    names = VARIABLE_RE.findall(template) + [m.group(1) for m in TAG_RE.finditer(template) if m.group(1)]
    invalid = sorted({name for name in names if name not in ALLOWED_VARIABLES})
    if invalid:
        tags = ", ".join("{{%s}}" % name for name in invalid)
        errors.append(f"Variáveis inválidas: {tags}")

    return {"is_valid": not errors, "errors": errors}
