"""
Tests for the branch predictor family and factory.
"""

import pytest

from pipesim.predictors import (
    PREDICTOR_SLUGS,
    OneBitPredictor,
    StaticPredictor,
    TournamentPredictor,
    TwoBitPredictor,
    get_predictor_names,
    make_predictor,
)


def resolve(predictor, pc, taken):
    """One predict/update pair; returns the guess."""
    guess = predictor.predict(pc)
    predictor.update(pc, taken)
    return guess


class TestStaticPredictor:

    @pytest.mark.parametrize("bias", [True, False])
    def test_fixed_outcome(self, bias):
        p = StaticPredictor(bias)
        outcomes = [True, False, True, True]
        guesses = [resolve(p, pc, t) for pc, t in enumerate(outcomes)]

        assert guesses == [bias] * 4
        assert p.predictions == 4
        assert p.mispredictions == sum(1 for t in outcomes if t != bias)

    def test_names(self):
        assert StaticPredictor(True).name == "Static-AlwaysTaken"
        assert StaticPredictor(False).name == "Static-AlwaysNotTaken"

    @pytest.mark.parametrize("key", get_predictor_names())
    def test_name_is_read_only(self, key):
        p = make_predictor(key)
        assert isinstance(type(p).name, property)
        with pytest.raises(AttributeError):
            p.name = "other"


class TestOneBitPredictor:

    def test_default_not_taken(self):
        assert OneBitPredictor().predict(10) is False

    def test_remembers_last_outcome_per_pc(self):
        p = OneBitPredictor()
        resolve(p, 4, True)
        resolve(p, 8, False)
        assert p.predict(4) is True
        assert p.predict(8) is False

    def test_flips_on_each_change(self):
        p = OneBitPredictor()
        outcomes = [True, True, False, True]
        guesses = [resolve(p, 0, t) for t in outcomes]
        assert guesses == [False, True, True, False]
        assert p.mispredictions == 3


class TestTwoBitPredictor:

    def test_needs_two_taken_to_predict_taken(self):
        p = TwoBitPredictor()
        guesses = [resolve(p, 0, True) for _ in range(4)]
        assert guesses == [False, False, True, True]
        assert p.table[0] == 3

    def test_saturates_at_bounds(self):
        p = TwoBitPredictor()
        for _ in range(10):
            resolve(p, 0, True)
        assert p.table[0] == 3
        for _ in range(10):
            resolve(p, 0, False)
        assert p.table[0] == 0

    def test_hysteresis(self):
        p = TwoBitPredictor()
        for _ in range(3):
            resolve(p, 0, True)
        # One not-taken does not flip a strongly-taken counter
        resolve(p, 0, False)
        assert p.predict(0) is True


class TestTournamentPredictor:

    def test_components_are_private(self):
        a, b = TournamentPredictor(), TournamentPredictor()
        assert a.one_bit is not b.one_bit
        assert a.two_bit is not b.two_bit

    def test_starts_with_two_bit_component(self):
        p = TournamentPredictor()
        resolve(p, 0, True)
        # 1-bit now says taken, 2-bit still says not-taken
        assert p.predict(0) is False

    def test_chooser_moves_toward_correct_component(self):
        p = TournamentPredictor()
        resolve(p, 0, True)                 # both wrong: chooser unchanged
        assert p.chooser.get(0, p.CHOOSER_INIT) == 2
        resolve(p, 0, True)                 # 1-bit right, 2-bit wrong
        assert p.chooser[0] == 1
        # Chooser now selects the 1-bit component
        resolve(p, 0, False)                # both components agree (taken): unchanged
        assert p.chooser[0] == 1

    def test_both_components_trained_and_counted(self):
        p = TournamentPredictor()
        for taken in (True, True, False):
            resolve(p, 7, taken)
        assert p.one_bit.predictions == 3
        assert p.two_bit.predictions == 3
        assert p.one_bit.table[7] is False
        assert p.two_bit.table[7] == 1

    def test_chooser_saturates(self):
        p = TournamentPredictor()
        # Alternating outcomes: 1-bit is always wrong once warmed up
        for i in range(20):
            resolve(p, 0, i % 2 == 0)
        assert 0 <= p.chooser.get(0, 2) <= 3


class TestBookkeeping:
    """Shared predict/update bookkeeping."""

    @pytest.mark.parametrize("key", get_predictor_names())
    def test_repeated_predict_is_idempotent(self, key):
        p = make_predictor(key)
        first = p.predict(3)
        assert p.predict(3) == first
        assert p.predictions == 1

    @pytest.mark.parametrize("key", get_predictor_names())
    def test_update_scores_the_guess_used(self, key):
        p = make_predictor(key)
        guess = p.predict(3)
        p.update(3, not guess)
        assert p.mispredictions == 1
        assert p.accuracy() == 0.0

    def test_accuracy(self):
        p = StaticPredictor(False)
        for taken in (False, False, False, True):
            resolve(p, 0, taken)
        assert p.accuracy() == pytest.approx(75.0)
        assert StaticPredictor().accuracy() == 0.0

    def test_reset(self):
        p = TwoBitPredictor()
        resolve(p, 0, True)
        p.predict(1)
        p.reset()
        assert p.predictions == 0
        assert p.table == {}
        assert p.predict(1) is False


class TestFactory:

    @pytest.mark.parametrize("key,cls,name", [
        ("static_nt", StaticPredictor, "Static-AlwaysNotTaken"),
        ("static_t", StaticPredictor, "Static-AlwaysTaken"),
        ("1bit", OneBitPredictor, "OneBit"),
        ("2bit", TwoBitPredictor, "TwoBit"),
        ("tournament", TournamentPredictor, "Tournament"),
    ])
    def test_known_keys(self, key, cls, name):
        p = make_predictor(key)
        assert isinstance(p, cls)
        assert p.name == name

    def test_case_insensitive(self):
        assert make_predictor("TOURNAMENT").name == "Tournament"
        assert make_predictor(" 2Bit ").name == "TwoBit"

    @pytest.mark.parametrize("key", ["gshare", "", None])
    def test_unknown_falls_back_to_not_taken(self, key):
        assert make_predictor(key).name == "Static-AlwaysNotTaken"

    def test_fresh_instances(self):
        assert make_predictor("1bit") is not make_predictor("1bit")

    def test_menu_order_and_slugs(self):
        assert get_predictor_names() == ["static_nt", "static_t", "1bit", "2bit", "tournament"]
        assert PREDICTOR_SLUGS["1bit"] == "one_bit"
        assert PREDICTOR_SLUGS["2bit"] == "two_bit"
