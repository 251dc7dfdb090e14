"""Password strength rules"""

import pytest

from validators.password_validator import check_password, validate_password


class TestPasswordRules:

    @pytest.mark.parametrize("password, fragment", [
        ("", "required"),
        ("Sh0rt!", "at least 8"),
        ("A1!" + "a" * 130, "must not exceed"),
        ("lowercase1!", "uppercase"),
        ("UPPERCASE1!", "lowercase"),
        ("NoDigits!!", "number"),
        ("NoSpecial12", "special"),
    ])
    def test_rejections(self, password, fragment):
        is_valid, message = check_password(password)
        assert not is_valid
        assert fragment in message

    def test_strong_password(self):
        assert check_password("Str0ng!Passw0rd") == (True, "")
        validate_password("Str0ng!Passw0rd")

    def test_validate_raises(self):
        with pytest.raises(ValueError, match="special"):
            validate_password("NoSpecial12")
