from litebind import Named, Positional, parameter_set
from litebind.params import candidate_names


def test_no_arguments():
    assert parameter_set(()) is None

def test_rest_arguments_are_positional():
    assert parameter_set((1, "a")) == Positional((1, "a"))
    assert parameter_set(("only",)) == Positional(("only",))

def test_single_sequence_is_positional():
    assert parameter_set(([1, "a"],)) == Positional((1, "a"))
    assert parameter_set(((1, "a"),)) == Positional((1, "a"))
    assert parameter_set(((),)) == Positional(())

def test_single_mapping_is_named():
    assert parameter_set(({"id": 1},)) == Named({"id": 1})

def test_bytes_is_a_scalar():
    assert parameter_set((b"\x00\x01",)) == Positional((b"\x00\x01",))

def test_candidate_names():
    assert candidate_names("bar") == (":bar",)
    assert candidate_names(":bar") == (":bar",)
    assert candidate_names("@bar") == ("@bar",)
    assert candidate_names("$bar") == ("$bar",)
