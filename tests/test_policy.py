from ficqueue.validation.policy import check_acceptance

FANDOM = ["Supernatural (TV 2005)"]


def test_missing_fandom_is_rejected():
    decision = check_acceptance(["Good Omens (TV)"], ["Castiel/Dean Winchester"])
    assert not decision.accepted
    assert "Supernatural (TV 2005)" in decision.reason


def test_gen_work_is_accepted():
    assert check_acceptance(FANDOM, []).accepted


def test_canonical_pairing_is_accepted():
    assert check_acceptance(FANDOM, ["Castiel/Dean Winchester", "Sam Winchester/Eileen Leahy"]).accepted


def test_canonical_pairing_tolerates_double_slash_and_spacing():
    assert check_acceptance(FANDOM, ["castiel // dean winchester"]).accepted


def test_other_pairing_with_either_half_is_rejected():
    decision = check_acceptance(FANDOM, ["Dean Winchester/Lisa Braeden"])
    assert not decision.accepted
    assert decision.reason == "Detected Multishipping: Dean Winchester/Lisa Braeden"


def test_friendship_and_past_pairings_are_allowed():
    assert check_acceptance(
        FANDOM,
        ["Castiel & Dean Winchester", "Past Dean Winchester/Lisa Braeden", "Sam Winchester/Eileen Leahy"],
    ).accepted


def test_threesome_including_canonical_pair_is_rejected():
    decision = check_acceptance(FANDOM, ["Castiel/Dean Winchester/Sam Winchester"])
    assert not decision.accepted
