"""Unit tests for the patient record model and its list-edit helpers."""

import pytest

from clinic_records.models.record import (
    FollowUp,
    Gender,
    PatientRecord,
    PatientStatus,
    Surgeon,
    SurgeryRecord,
    add_follow_up,
    add_surgery,
    remove_follow_up,
    remove_surgery,
    renumber_follow_ups,
)
from clinic_records.models.user import UserAccount, UserRole


class TestPatientRecordDocument:
    """Test conversion to and from the stored document shape."""

    def test_to_dict_includes_derived_fields(self, sample_record) -> None:
        # Arrange & Act
        document = sample_record.to_dict()

        # Assert
        assert document["diagnosis"] == "Fracture"
        assert document["admissionDate"] == document["visitedDate"] == "2024-11-01"
        assert document["gender"] == "Male"
        assert document["status"] == "Diagnosed"
        assert "id" not in document
        assert "surgeries" not in document

    def test_undiagnosed_placeholder(self) -> None:
        record = PatientRecord(code="2024/11/0001", full_name_arabic="A")

        assert record.diagnosis == "Undiagnosed"
        assert record.to_dict()["diagnoses"] == []

    def test_from_dict_keeps_unknown_keys(self) -> None:
        # Arrange
        document = {
            "id": "r1",
            "code": "2024/11/0001",
            "fullNameArabic": "علي",
            "gender": "Female",
            "status": "Op",
            "admissionDate": "2024-01-01",
            "bloodType": "A-",
        }

        # Act
        record = PatientRecord.from_dict(document)

        # Assert
        assert record.gender == Gender.FEMALE
        assert record.status == PatientStatus.OP
        assert record.visited_date == "2024-01-01"
        assert record.extra == {"bloodType": "A-"}
        assert record.to_dict()["bloodType"] == "A-"

    def test_from_dict_unknown_enum_values_fall_back(self) -> None:
        record = PatientRecord.from_dict({"code": "c", "fullNameArabic": "n", "gender": "?", "status": "Discharged"})

        assert record.gender == Gender.MALE
        assert record.status == PatientStatus.DIAGNOSED

    def test_document_round_trip(self) -> None:
        document = {
            "id": "r1",
            "code": "2024/11/0001",
            "fullNameArabic": "علي",
            "age": 3,
            "gender": "Other",
            "diagnoses": ["Burn"],
            "diagnosis": "Burn",
            "status": "Pre-op",
            "visitedDate": "2024-11-01",
            "admissionDate": "2024-11-01",
            "notes": "",
            "surgeries": [{"date": "2024-11-02", "type": "Graft", "cost": 100, "costCurrency": "IQD"}],
            "followUps": [{"number": 1, "date": "2024-11-10", "notes": "ok"}],
            "createdAt": "2024-11-01T00:00:00.000Z",
        }

        assert PatientRecord.from_dict(document).to_dict() == document


class TestSurgeryRecord:
    """Test surgery entries."""

    def test_legacy_single_surgeon(self) -> None:
        surgery = SurgeryRecord.from_dict({"date": "2024-01-01", "type": "Graft", "surgeon": "Dr. Omar"})

        assert surgery.surgeons == [Surgeon(name="Dr. Omar")]
        assert surgery.to_dict()["surgeons"] == [{"name": "Dr. Omar"}]

    def test_surgeon_team(self) -> None:
        surgery = SurgeryRecord.from_dict(
            {
                "date": "2024-01-01",
                "type": "Graft",
                "surgeons": [{"name": "Dr. Omar", "specialization": "Plastic"}, {"name": "Dr. Lina"}],
            }
        )

        assert [s.name for s in surgery.surgeons] == ["Dr. Omar", "Dr. Lina"]
        assert surgery.surgeons[0].specialization == "Plastic"

    @pytest.mark.parametrize("raw,expected", [(1500, 1500.0), ("1500.5", 1500.5), (None, None)])
    def test_numeric_cost_parsed(self, raw, expected) -> None:
        surgery = SurgeryRecord.from_dict({"date": "2024-01-01", "type": "Graft", "cost": raw})

        assert surgery.cost == expected
        assert surgery.extra == {}

    def test_unparseable_cost_kept_verbatim(self) -> None:
        # Arrange & Act
        surgery = SurgeryRecord.from_dict({"date": "2024-01-01", "type": "Graft", "cost": "1,500"})

        # Assert
        assert surgery.cost is None
        assert surgery.extra == {"cost": "1,500"}
        assert surgery.to_dict()["cost"] == "1,500"

    def test_add_and_remove(self) -> None:
        # Arrange
        first = SurgeryRecord(date="2024-01-01", type="Graft")
        second = SurgeryRecord(date="2024-02-01", type="Flap")
        surgeries = add_surgery([first], second)

        # Act
        remaining = remove_surgery(surgeries, 0)

        # Assert
        assert remaining == [second]
        assert surgeries == [first, second]

    def test_remove_out_of_range(self) -> None:
        with pytest.raises(IndexError):
            remove_surgery([], 0)


class TestFollowUps:
    """Test contiguous follow-up numbering."""

    def test_add_numbers_after_existing(self) -> None:
        follow_ups = add_follow_up([FollowUp(number=1, date="2024-01-01")], date="2024-02-01", notes="check")

        assert [f.number for f in follow_ups] == [1, 2]
        assert follow_ups[1].notes == "check"

    def test_remove_renumbers_and_keeps_content(self) -> None:
        # Arrange
        follow_ups = [
            FollowUp(number=1, date="2024-01-01", notes="first"),
            FollowUp(number=2, date="2024-02-01", notes="second"),
            FollowUp(number=3, date="2024-03-01", notes="third", photos=["a.jpg"]),
        ]

        # Act
        remaining = remove_follow_up(follow_ups, 2)

        # Assert
        assert [(f.number, f.notes) for f in remaining] == [(1, "first"), (2, "third")]
        assert remaining[1].photos == ["a.jpg"]
        assert follow_ups[2].number == 3

    def test_remove_unknown_number(self) -> None:
        with pytest.raises(ValueError, match="No follow-up numbered 5"):
            remove_follow_up([FollowUp(number=1, date="2024-01-01")], 5)

    def test_renumber_closes_gaps(self) -> None:
        follow_ups = [FollowUp(number=4, date="a"), FollowUp(number=9, date="b")]

        assert [f.number for f in renumber_follow_ups(follow_ups)] == [1, 2]


class TestUserAccount:
    """Test financial visibility of accounts."""

    @pytest.mark.parametrize(
        "role,flag,expected",
        [
            (UserRole.ADMIN, False, True),
            (UserRole.DOCTOR, False, False),
            (UserRole.DOCTOR, True, True),
            (UserRole.USER, False, False),
        ],
    )
    def test_sees_financials(self, role, flag, expected) -> None:
        assert UserAccount(email="a@clinic", role=role, can_view_financial=flag).sees_financials is expected

    def test_from_dict_defaults(self) -> None:
        account = UserAccount.from_dict({"email": "a@clinic", "role": "superuser"})

        assert account.role == UserRole.USER
        assert account.name == "Unnamed User"
        assert "password" not in account.to_dict()
