from dataclasses import fields

from apps.notifications.events import EVENT_TYPES
from apps.notifications.templating import ALLOWED_VARIABLES, process_template, validate_template


class TestProcessTemplate:
    def test_substitutes_every_occurrence(self):
        result = process_template("{{name}}, olá {{name}}! R$ {{amount}}", {"name": "Ana", "amount": "50,00"})
        assert result == "Ana, olá Ana! R$ 50,00"

    def test_unknown_keys_are_left_untouched(self):
        result = process_template("Olá {{name}}, vence em {{due_date}}", {"name": "Ana"})
        assert result == "Olá Ana, vence em {{due_date}}"

    def test_none_value_is_left_untouched(self):
        assert process_template("Link: {{payment_link}}", {"payment_link": None}) == "Link: {{payment_link}}"

    def test_conditional_kept_when_truthy(self):
        template = "Olá{{#if payment_link}} pague em {{payment_link}}{{/if}}."
        result = process_template(template, {"payment_link": "https://pix.example/1"})
        assert result == "Olá pague em https://pix.example/1."

    def test_conditional_removed_when_missing_or_empty(self):
        template = "Olá{{#if payment_link}} pague em {{payment_link}}{{/if}}."
        assert process_template(template, {}) == "Olá."
        assert process_template(template, {"payment_link": ""}) == "Olá."

    def test_conditional_spans_lines(self):
        template = "A\n{{#if name}}linha 1\nlinha 2\n{{/if}}B"
        assert process_template(template, {"name": "Ana"}) == "A\nlinha 1\nlinha 2\nB"

    def test_multiple_blocks_are_independent(self):
        template = "{{#if name}}[{{name}}]{{/if}} - {{#if amount}}[{{amount}}]{{/if}}"
        assert process_template(template, {"name": "Ana"}) == "[Ana] - "

    def test_values_are_not_reinterpreted(self):
        result = process_template("Olá {{name}}", {"name": "{{amount}}", "amount": "10"})
        assert result == "Olá {{amount}}"

    def test_non_string_values(self):
        assert process_template("Dia {{due_date}}", {"due_date": 10}) == "Dia 10"

    def test_empty_template(self):
        assert process_template("", {"name": "Ana"}) == ""


class TestValidateTemplate:
    def test_valid_template(self):
        result = validate_template("Olá {{name}}{{#if payment_link}} {{payment_link}}{{/if}}")
        assert result == {"is_valid": True, "errors": []}

    def test_unbalanced_tags(self):
        result = validate_template("{{#if name}}Olá")
        assert not result["is_valid"]
        assert "Tags condicionais não estão balanceadas" in result["errors"]

    def test_close_before_open(self):
        result = validate_template("{{/if}}Olá{{#if name}}")
        assert "Tags condicionais não estão balanceadas" in result["errors"]

    def test_nested_blocks(self):
        result = validate_template("{{#if name}}{{#if amount}}x{{/if}}{{/if}}")
        assert "Blocos condicionais aninhados não são suportados" in result["errors"]

    def test_unknown_variables(self):
        result = validate_template("Olá {{nome}} {{cpf}}")
        assert not result["is_valid"]
        assert result["errors"] == ["Variáveis inválidas: {{cpf}}, {{nome}}"]

    def test_every_event_field_is_allowed(self):
        for event_cls in EVENT_TYPES.values():
            for field in fields(event_cls):
                if field.name == "user_id":
                    continue
                assert field.name in ALLOWED_VARIABLES, field.name

        result = validate_template("Recibo {{transaction_id}}: R$ {{amount}} em {{paid_at}}")
        assert result == {"is_valid": True, "errors": []}

    def test_never_raises_on_empty(self):
        assert validate_template(None) == {"is_valid": True, "errors": []}
