"""Authorization header parsing."""

import pytest

from chirpy.auth.bearer import get_bearer_token
from chirpy.auth.errors import InvalidToken


def test_extracts_token():
    assert get_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"


def test_strips_surrounding_whitespace():
    assert get_bearer_token("Bearer   abc  ") == "abc"


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer", "Bearer ", "Bearer    ", "bearer abc", "BEARER abc", "Basic abc", "abc"],
)
def test_rejects_missing_or_malformed(header):
    with pytest.raises(InvalidToken):
        get_bearer_token(header)
