# Overview: Pytest coverage for document number formatting and per-tenant sequence allocation.

from datetime import datetime

import pytest

from routewise.errors import ValidationError
from routewise.models import DocumentSequence
from routewise.services import numbering


class TestFormatting:
    def test_short_form(self):
        when = datetime(2025, 12, 3)
        assert numbering.format_document_number(numbering.INVOICE, 5, when) == "2512-F00005"
        assert numbering.format_document_number(numbering.QUOTATION, 123456, when) == "2512-C123456"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            numbering.format_document_number("receipt", 1)

    def test_long_form(self):
        number = numbering.format_long_document_number(
            "2512-C00005", client_code="HOTR", leader_name="Carlos Perez", group_size=8
        )
        assert number == "2512-C00005-HOTR-Carlos_Perez_x_08"

    def test_leader_name_sanitized(self):
        assert numbering.sanitize_leader_name("Carlos Pérez!") == "Carlos_Pérez"
        assert numbering.sanitize_leader_name("Maria Fernanda de los Angeles Lopez") == "Maria_Fernanda_de_los_Ang"
        assert numbering.sanitize_leader_name("  ") == "SIN_NOMBRE"
        assert numbering.sanitize_leader_name(None) == "SIN_NOMBRE"

    @pytest.mark.parametrize(
        "name,code",
        [
            ("Transportes", "TRAN"),
            ("Hotel Real S.A.", "HORE"),
            ("Grupo Turistico Maya", "GRTM"),
            ("Asociacion de Guias de Honduras", "ADGD"),
            ("", "XXXX"),
        ],
    )
    def test_client_code(self, name, code):
        assert numbering.client_code_from_name(name) == code


class TestExtractSequence:
    def test_current_numbers(self):
        assert numbering.extract_sequence("2512-C00005") == 5
        assert numbering.extract_sequence("2512-C00005-HOTR-Carlos_Perez_x_08", numbering.QUOTATION) == 5

    def test_type_filter(self):
        assert numbering.extract_sequence("2512-C00005", numbering.INVOICE) is None
        assert numbering.extract_sequence("INV-2024-0042", numbering.QUOTATION) is None

    def test_legacy_numbers(self):
        assert numbering.extract_sequence("QT-2024-0042", numbering.QUOTATION) == 42
        assert numbering.extract_sequence("ADV-2023-7") == 7

    @pytest.mark.parametrize("value", [None, "", "hello", "25-C1", "C00005"])
    def test_unrecognized(self, value):
        assert numbering.extract_sequence(value) is None


class TestAllocation:
    def test_sequence_is_monotonic_per_tenant_and_type(self, db_session, tenant_a, tenant_b):
        first = numbering.allocate_sequence(tenant_a.id, numbering.INVOICE)
        second = numbering.allocate_sequence(tenant_a.id, numbering.INVOICE)
        other_type = numbering.allocate_sequence(tenant_a.id, numbering.QUOTATION)
        other_tenant = numbering.allocate_sequence(tenant_b.id, numbering.INVOICE)
        db_session.commit()

        assert (first, second) == (1, 2)
        assert other_type == 1
        assert other_tenant == 1

    def test_high_water_mark_wins(self, db_session, tenant_a):
        db_session.add(DocumentSequence(tenant_id=tenant_a.id, document_type=numbering.INVOICE, last_number=10))
        db_session.commit()
        assert numbering.allocate_sequence(tenant_a.id, numbering.INVOICE) == 11

    def test_rollback_releases_number(self, db_session, tenant_a):
        assert numbering.allocate_sequence(tenant_a.id, numbering.ITINERARY) == 1
        db_session.rollback()
        assert numbering.allocate_sequence(tenant_a.id, numbering.ITINERARY) == 1

    def test_legacy_numbers_count_towards_max(self, db_session, tenant_a, make_quotation):
        legacy = make_quotation()
        legacy.quotation_number = "QT-2024-0042"
        db_session.commit()

        quotation = make_quotation()
        assert numbering.extract_sequence(quotation.quotation_number, numbering.QUOTATION) == 43

    def test_client_gets_long_form(self, db_session, tenant_a, hotel_client):
        number, seq = numbering.allocate_document_number(
            tenant_a.id,
            numbering.QUOTATION,
            client=hotel_client,
            leader_name="Carlos Perez",
            group_size=8,
            when=datetime(2026, 10, 19),
        )
        assert seq == 1
        assert number == "2610-C00001-HOTR-Carlos_Perez_x_08"

    def test_requires_tenant(self, db_session):
        with pytest.raises(ValidationError):
            numbering.allocate_sequence(None, numbering.INVOICE)
