def test_import_gamebook_package() -> None:
    import importlib

    module = importlib.import_module("gamebook")
    assert module is not None
    assert module.Engine is not None


def test_import_evaluator_no_side_effects() -> None:
    from gamebook.domain.conditions import ConditionEvaluator
    from gamebook.domain.state import GameState

    state = GameState(current_scene_id="sc_start")
    assert ConditionEvaluator().evaluate({"type": "flag", "flag": "X"}, state) is False
    assert state.flags == set()


def test_scene_loader_validator_comes_from_domain_layer() -> None:
    from gamebook.data import scene_loader

    assert scene_loader.ContentValidator.__module__ == "gamebook.domain.content_validator"
