from glow_hunter.core.dedupe import Deduplicator, dedupe_key, filter_new, normalize_text
from glow_hunter.core.models import OutputRow


def _row(place_id="", name="", address=""):
    return OutputRow(
        timestamp="ts",
        country="Colombia",
        city="Bogotá",
        category="barberías",
        query="q",
        name=name,
        address=address,
        place_id=place_id,
    )


def test_normalize_text():
    assert normalize_text("  Peluquería   ÁNGEL\t") == "peluqueria angel"
    assert normalize_text(None) == ""


def test_dedupe_key_prefers_place_id():
    assert dedupe_key(" A ", "Name", "Addr") == "A"
    assert dedupe_key("", "Barbería  José", "Calle 10") == "barberia jose|calle 10"
    assert dedupe_key(None, "Name only", "") is None


def test_filter_new_first_occurrence_wins():
    rows = [_row("A", "one"), _row("B"), _row("A", "two"), _row("C")]

    accepted, keys = filter_new(rows, {"C"})

    assert [r.place_id for r in accepted] == ["A", "B"]
    assert accepted[0].name == "one"
    assert keys == {"A", "B", "C"}


def test_filter_new_fallback_key_matches_normalized_text():
    rows = [
        _row(name="Barbería José", address="Calle 10 # 5"),
        _row(name="barberia  jose", address="CALLE 10 # 5 "),
    ]

    accepted, _ = filter_new(rows, set())

    assert len(accepted) == 1


def test_filter_new_place_id_takes_precedence_over_name():
    rows = [
        _row("A", name="Spa Luz", address="Calle 1"),
        _row("B", name="Spa Luz", address="Calle 1"),
    ]

    accepted, _ = filter_new(rows, set())

    assert [r.place_id for r in accepted] == ["A", "B"]


def test_filter_new_drops_rows_without_identity():
    accepted, keys = filter_new([_row(name="No address")], set())
    assert accepted == []
    assert keys == set()


def test_deduplicator_second_run_adds_nothing():
    first = Deduplicator()
    rows = [_row("A"), _row("B"), _row(name="Sin id", address="Calle 9")]
    stored = first.filter_new(rows)
    assert len(stored) == 3

    seed = {dedupe_key(r.place_id, r.name, r.address) for r in stored}
    second = Deduplicator(seed)

    assert second.filter_new(rows) == []
    assert second.is_known_place("A")
    assert not second.is_known_place("")
    assert len(second) == 3
