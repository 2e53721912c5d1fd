from stockchef.services.recipe_models import IngredientLine, RecipeCandidate
from stockchef.services.recipe_ranker import rank_candidates, score_candidate

EXEMPT = frozenset({"water"})


def recipe(name, *lines, quality=None):
    return RecipeCandidate(name=name, ingredients=tuple(IngredientLine(n, q) for n, q in lines), quality=quality)


def test_score_formula():
    stock = {"tomato": 4.0, "rice": 2.0}
    candidate = recipe("Tomato rice", ("tomato", 2), ("rice", 2))

    # coverage 1.0, depletion (0.5 + 1.0) / 2, quality 0
    assert score_candidate(candidate, stock, EXEMPT) == 0.725


def test_exempt_lines_do_not_affect_score():
    stock = {"tomato": 4.0, "water": 100.0}
    with_water = recipe("Soup", ("tomato", 2), ("water", 50))
    without = recipe("Soup", ("tomato", 2))

    assert score_candidate(with_water, stock, EXEMPT) == score_candidate(without, stock, EXEMPT)


def test_higher_coverage_ranks_first():
    stock = {"tomato": 4.0, "rice": 4.0, "onion": 4.0}
    narrow = recipe("Tomato", ("tomato", 4))
    wide = recipe("Everything", ("tomato", 1), ("rice", 1), ("onion", 1))

    ranked = rank_candidates([narrow, wide], stock, EXEMPT)

    assert [r.candidate.name for r in ranked] == ["Everything", "Tomato"]
    assert ranked[0].score > ranked[1].score


def test_quality_breaks_ties():
    stock = {"tomato": 4.0}
    plain = recipe("Plain", ("tomato", 2))
    rated = recipe("Rated", ("tomato", 2), quality=0.5)

    ranked = rank_candidates([plain, rated], stock, EXEMPT)

    assert [r.candidate.name for r in ranked] == ["Rated", "Plain"]


def test_equal_scores_keep_input_order():
    stock = {"tomato": 4.0, "rice": 4.0}
    first = recipe("First", ("tomato", 2))
    second = recipe("Second", ("rice", 2))
    third = recipe("Third", ("tomato", 2))

    ranked = rank_candidates([first, second, third], stock, EXEMPT)

    assert [r.candidate.name for r in ranked] == ["First", "Second", "Third"]
    assert len({r.score for r in ranked}) == 1


def test_ranking_is_repeatable():
    stock = {"tomato": 3.0, "rice": 2.0, "onion": 1.0}
    candidates = [recipe("A", ("tomato", 1)), recipe("B", ("rice", 2), ("onion", 1)), recipe("C", ("onion", 1))]

    assert rank_candidates(candidates, stock, EXEMPT) == rank_candidates(candidates, stock, EXEMPT)
