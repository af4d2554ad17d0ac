from roomhub.services.credentials import check_password, make_secret


def test_empty_password_means_no_protection():
    assert make_secret(None) is None
    assert make_secret("") is None


def test_secret_is_not_the_password():
    secret = make_secret("s3cret")
    assert secret is not None
    assert "s3cret" not in secret


def test_check_password_accepts_only_the_right_candidate():
    secret = make_secret("s3cret")
    assert check_password(secret, "s3cret")
    assert not check_password(secret, "wrong")
    assert not check_password(secret, "")
    assert not check_password(secret, None)


def test_unprotected_room_accepts_anything():
    assert check_password(None, None)
    assert check_password(None, "whatever")


def test_malformed_secret_is_rejected_not_raised():
    assert not check_password("not-a-bcrypt-hash", "s3cret")
