from coderoom.auth import InMemoryAuthenticator


def test_register_and_authenticate():
    auth = InMemoryAuthenticator()

    assert auth.register("ada", "lovelace").ok
    result = auth.authenticate("ada", "lovelace")

    assert result.ok
    assert result.username == "ada"
    assert auth.display_name_for(result.token) == "ada"
    assert result.to_dict() == {"token": result.token, "username": "ada"}


def test_wrong_password_and_unknown_user():
    auth = InMemoryAuthenticator()
    auth.register("ada", "lovelace")

    assert auth.authenticate("ada", "babbage").to_dict() == {"error": "Invalid credentials"}
    assert auth.authenticate("nobody", "x").error == "Invalid credentials"


def test_duplicate_and_empty_registration():
    auth = InMemoryAuthenticator()
    auth.register("ada", "lovelace")

    assert auth.register("ada", "other").error == "User already exists"
    assert auth.register("", "pw").error == "username and password required"


def test_unknown_token_has_no_name():
    auth = InMemoryAuthenticator()

    assert auth.display_name_for(None) is None
    assert auth.display_name_for("forged") is None
