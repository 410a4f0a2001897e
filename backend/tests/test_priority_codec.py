import pytest

from optimization.priority import decode_priority, encode_priority


def test_empty_sequence_encodes_to_empty_string():
    assert encode_priority([]) == ""
    assert encode_priority(None) == ""


@pytest.mark.parametrize("value", ["", "   ", None])
def test_blank_value_decodes_to_empty_list(value):
    assert decode_priority(value) == []


def test_encode_preserves_order():
    assert encode_priority([3, 1, 2]) == "3,1,2"


@pytest.mark.parametrize("ids", [[0], [7, 7, 7], [12, 4, 0, 99], list(range(50, 0, -3))])
def test_round_trip_is_lossless(ids):
    assert decode_priority(encode_priority(ids)) == ids


def test_decode_drops_garbage_tokens():
    assert decode_priority("1,x,3") == [1, 3]
    assert decode_priority("4,,5, ,abc,6") == [4, 5, 6]


def test_decode_tolerates_whitespace_around_tokens():
    assert decode_priority(" 8 , 9 ") == [8, 9]


@pytest.mark.parametrize("value", ["1_0", "٣", "3.5", "+4", "0x1f"])
def test_decode_rejects_non_decimal_tokens(value):
    assert decode_priority(value) == []


def test_decode_keeps_plain_tokens_next_to_rejected_ones():
    assert decode_priority("1_0,٣,3.5,7") == [7]
