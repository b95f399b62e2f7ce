from phonoscribe.app.transcript import assemble, clean_ipa_output


def test_assemble_joins_with_single_spaces():
    assert assemble(["  həloʊ ", "wɝld"]) == "həloʊ wɝld"


def test_assemble_skips_empty_texts():
    assert assemble(["a", "", "   ", "b"]) == "a b"


def test_assemble_empty():
    assert assemble([]) == ""


def test_assemble_is_idempotent():
    texts = ["a ", " b", "", "c"]
    assert assemble(texts) == assemble(texts) == "a b c"
    assert texts == ["a ", " b", "", "c"]


def test_clean_ipa_output_removes_tags():
    assert clean_ipa_output("[MUSIC] həloʊ [SPEAKER 2] wɝld ") == "həloʊ wɝld"
