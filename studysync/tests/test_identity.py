import uuid

import pytest
from studysync.identity import normalize_name, participant_id, validate_name

NAMESPACE = uuid.UUID("6f1c3c52-2f0b-4c1e-9d4e-0a9b8f7e6d5c")


class TestParticipantId:
    @pytest.mark.parametrize("a,b", [
        ("Jane Doe", "jane doe"),
        ("Jane Doe", "JANE DOE"),
        ("Mary-Ann O.", "mary-ann o."),
    ])
    def test_case_folded_names_share_an_id(self, a, b):
        assert participant_id(a, NAMESPACE) == participant_id(b, NAMESPACE)

    def test_distinct_names_get_distinct_ids(self):
        names = [f"Participant {chr(65 + i)}{chr(65 + j)}" for i in range(26) for j in range(26)]
        ids = {participant_id(n, NAMESPACE) for n in names}
        assert len(ids) == len(names)

    def test_is_a_name_based_uuid(self):
        pid = participant_id("Jane Doe", NAMESPACE)
        assert pid == str(uuid.uuid5(NAMESPACE, "jane doe"))
        assert uuid.UUID(pid).version == 5

    def test_namespace_changes_the_id(self):
        other = uuid.UUID("00000000-0000-0000-0000-000000000001")
        assert participant_id("Jane Doe", NAMESPACE) != participant_id("Jane Doe", other)

    def test_whitespace_is_significant(self):
        assert participant_id("Jane Doe", NAMESPACE) != participant_id("Jane Doe ", NAMESPACE)

    def test_normalize_uses_casefold(self):
        assert normalize_name("STRASSE") == normalize_name("straße")


class TestValidateName:
    def test_accepts_letters_spaces_dots_dashes(self):
        assert validate_name("Jane Q. Doe-Smith") is None

    def test_accepts_keep_alive_client_name(self):
        assert validate_name("keep alive") is None

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_empty(self, name):
        assert "full name" in validate_name(name)

    @pytest.mark.parametrize("name", ["R2D2", "jane@doe", "<script>"])
    def test_rejects_other_characters(self, name):
        assert "alphabetic" in validate_name(name)
