from datetime import date

import pytest

from deskflow.services.field_extractor import extract_fields

TODAY = date(2026, 10, 19)


class TestExtractFields:
    def test_reservation_opening(self):
        fields = extract_fields("reservar sala mañana a las 11 am titulada Sync", TODAY)
        assert fields["date"] == "2026-10-20"
        assert fields["start"] == "11 am"
        assert "end" not in fields
        assert fields["title"] == "Sync"

    def test_time_range(self):
        fields = extract_fields("sala hoy de 10:00 a 11:30", TODAY)
        assert fields["date"] == "2026-10-19"
        assert (fields["start"], fields["end"]) == ("10:00", "11:30")

    def test_from_until(self):
        fields = extract_fields("book the room from 3pm until 4:30pm", TODAY)
        assert fields["start"] == "3pm"
        assert fields["end"] == "4:30pm"

    def test_explicit_date_with_year(self):
        assert extract_fields("junta el 5/11/2026 a las 9:00", TODAY)["date"] == "2026-11-05"

    def test_invalid_explicit_date_falls_back_to_keywords(self):
        fields = extract_fields("el 31/02 o mañana", TODAY)
        assert fields["date"] == "2026-10-20"

    def test_title_is_cut_before_later_time(self):
        fields = extract_fields("sala titulada Revisión mensual mañana a las 10:00", TODAY)
        assert fields["title"] == "Revisión mensual"
        assert fields["start"] == "10:00"

    def test_title_keeps_original_casing(self):
        assert extract_fields("reserva titled Q4 Planning", TODAY)["title"] == "Q4 Planning"

    def test_quoted_for_title(self):
        assert extract_fields('reserva para "Demo cliente" hoy', TODAY)["title"] == "Demo cliente"

    def test_unquoted_for_is_not_a_title(self):
        assert "title" not in extract_fields("reserva para el equipo", TODAY)

    def test_branch_alias(self):
        assert extract_fields("la impresora de Lomas no imprime", TODAY)["branch"] == "lomas"

    def test_progress(self):
        assert extract_fields("proyecto ERP 45%", TODAY)["progress"] == 45

    def test_progress_over_100_ignored(self):
        assert "progress" not in extract_fields("tarea 250%", TODAY)

    @pytest.mark.parametrize("value", [None, "", "   ", 42, ["hoy"]])
    def test_never_raises(self, value):
        assert extract_fields(value, TODAY) == {}

    def test_nothing_recognised(self):
        assert extract_fields("hola, ¿cómo estás?", TODAY) == {}
