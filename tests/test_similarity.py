"""Tests for the text, keyword, DOM and form signals."""

import pytest

from phishwatch.analyzer.dom_similarity import class_similarity, compare_dom_trees, dom_similarity
from phishwatch.analyzer.form_similarity import compare_form_fields, fields_match, form_similarity
from phishwatch.analyzer.models import DomNode, FormDescriptor, FormField
from phishwatch.analyzer.text_similarity import keyword_similarity, text_similarity

BANK_TEXT = "Welcome to Example Bank. Login to your account."


def make_tree() -> DomNode:
    return DomNode(
        tag="BODY",
        children=(
            DomNode(tag="HEADER", classes=("site-header", "sticky"), children=(DomNode(tag="IMG", classes=("logo",)),)),
            DomNode(
                tag="MAIN",
                classes=("content",),
                children=(DomNode(tag="FORM", id="login"), DomNode(tag="P")),
            ),
        ),
    )


class TestTextSimilarity:
    def test_identical_text_scores_100(self):
        assert text_similarity(BANK_TEXT, BANK_TEXT) == pytest.approx(100.0)

    def test_unrelated_text_scores_0(self):
        assert text_similarity(BANK_TEXT, "Unrelated recipe blog") == pytest.approx(0.0)

    def test_partial_overlap_in_between(self):
        score = text_similarity(BANK_TEXT, "Example Bank mortgage rates and savings")
        assert 0.0 < score < 100.0

    @pytest.mark.parametrize("a,b", [("", BANK_TEXT), (BANK_TEXT, ""), (None, BANK_TEXT), ("   ", "   ")])
    def test_empty_inputs_score_0(self, a, b):
        assert text_similarity(a, b) == 0.0

    def test_punctuation_only_scores_0(self):
        assert text_similarity("...", "!!!") == 0.0

    def test_case_and_punctuation_ignored(self):
        assert text_similarity("Hello, WORLD 42", "hello world 42!") == pytest.approx(100.0)

    def test_tokenless_candidate_scores_0(self):
        assert text_similarity(BANK_TEXT, "... !!!") == 0.0


class TestKeywordSimilarity:
    def test_fraction_of_keywords_found(self):
        score = keyword_similarity(["combank", "digital banking", "missing"], "Welcome to ComBank Digital Banking")
        assert score == pytest.approx(200 / 3)

    def test_no_keywords_scores_0(self):
        assert keyword_similarity([], "anything") == 0.0

    def test_empty_candidate_scores_0(self):
        assert keyword_similarity(["combank"], "") == 0.0


class TestDomSimilarity:
    def test_identical_tree_scores_100(self):
        assert dom_similarity(make_tree(), make_tree()) == pytest.approx(100.0)

    def test_missing_or_empty_tree_scores_0(self):
        assert dom_similarity(None, make_tree()) == 0.0
        assert dom_similarity(make_tree(), DomNode(tag="")) == 0.0

    def test_different_root_tag_lowers_score(self):
        other = DomNode(tag="DIV", children=make_tree().children)
        score = dom_similarity(make_tree(), other)
        assert 0.0 < score < 100.0

    def test_class_jaccard_empty_union_is_zero(self):
        assert class_similarity([], []) == 0.0
        assert class_similarity(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)

    def test_depth_cap_returns_neutral_score(self):
        a = DomNode(tag="DIV")
        b = DomNode(tag="SPAN")
        assert compare_dom_trees(a, b, depth=6) == 0.5
        assert compare_dom_trees(a, b, depth=6, depth_cap_score=0.25) == 0.25

    def test_node_score_is_mean_of_components(self):
        a = DomNode(tag="DIV", classes=("x",), children=(DomNode(tag="P"),))
        b = DomNode(tag="DIV", classes=("y",), children=(DomNode(tag="SPAN"),))
        # tag 1, classes 0, child 0
        assert compare_dom_trees(a, b) == pytest.approx(1 / 3)


class TestFormSimilarity:
    def login_form(self) -> FormDescriptor:
        return FormDescriptor(
            fields=(
                FormField(type="text", name="username", id="user"),
                FormField(type="password", name="password", id="pass"),
                FormField(type="submit", name="go"),
            ),
            action="https://combankdigital.com/login",
        )

    def test_identical_forms_score_100(self):
        assert form_similarity([self.login_form()], [self.login_form()]) == pytest.approx(100.0)

    def test_no_forms_scores_0(self):
        assert form_similarity([], [self.login_form()]) == 0.0
        assert form_similarity([self.login_form()], []) == 0.0

    def test_type_must_match(self):
        a = FormField(type="text", name="user")
        b = FormField(type="email", name="user")
        assert not fields_match(a, b)

    def test_one_identifier_is_enough(self):
        a = FormField(type="password", name="pwd", id="a")
        b = FormField(type="password", name="secret", id="a")
        assert fields_match(a, b)

    def test_ratio_over_larger_form(self):
        small = [FormField(type="password", name="pwd")]
        large = [FormField(type="password", name="pwd"), FormField(type="text", name="otp", placeholder="x")]
        assert compare_form_fields(small, large) == pytest.approx(0.5)

    def test_best_pair_wins(self):
        search = FormDescriptor(fields=(FormField(type="search", name="q"),))
        score = form_similarity([self.login_form()], [search, self.login_form()])
        assert score == pytest.approx(100.0)
