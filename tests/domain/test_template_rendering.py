"""Tests for ``[VARIABLE]`` template rendering (``signing_kernel.domain.templates``)."""

from hypothesis import given
from hypothesis import strategies as st

from signing_kernel.domain.templates import (
    extract_variables,
    missing_variables,
    render_template,
)

variable_names = st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ_", min_size=1, max_size=12)
plain_values = st.text(alphabet=st.characters(exclude_characters="[]"), max_size=40)


class TestExtractVariables:

    def test_order_of_first_appearance(self):
        body = "[CONTRATANTE] contrata [CONTRATADA]; [CONTRATANTE] paga [VALOR]."
        assert extract_variables(body) == ("CONTRATANTE", "CONTRATADA", "VALOR")

    def test_lowercase_and_digits_are_not_placeholders(self):
        assert extract_variables("[nome] [VALOR1] [DATA_INICIO]") == ("DATA_INICIO",)

    def test_no_placeholders(self):
        assert extract_variables("Texto sem variaveis.") == ()


class TestRenderTemplate:

    def test_substitutes_known_values(self):
        body = "Contratante: [CONTRATANTE]. Valor: [VALOR]."
        rendered = render_template(body, {"CONTRATANTE": "Acme Ltda.", "VALOR": "R$ 100,00"})
        assert rendered == "Contratante: Acme Ltda.. Valor: R$ 100,00."

    def test_unknown_placeholders_stay(self):
        assert render_template("[A] e [B]", {"A": "x"}) == "x e [B]"

    def test_values_are_inserted_literally(self):
        rendered = render_template("[NOME]", {"NOME": "<b>Jane</b> & [OUTRO]"})
        assert rendered == "<b>Jane</b> & [OUTRO]"

    def test_missing_variables(self):
        assert missing_variables("[A] [B] [A]", {"B": "1"}) == ("A",)

    @given(st.dictionaries(variable_names, plain_values, min_size=1, max_size=5))
    def test_rendering_removes_every_supplied_placeholder(self, values):
        body = " | ".join(f"[{name}]" for name in values)
        rendered = render_template(body, values)
        assert rendered == " | ".join(values[name] for name in values)
        assert missing_variables(body, values) == ()

    @given(plain_values)
    def test_text_without_placeholders_is_unchanged(self, text):
        assert render_template(text, {"ANY": "value"}) == text
