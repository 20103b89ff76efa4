"""Unit tests for auth/validation.py -- the registration request pipeline.

Covers:
- sanitize_input: object-only bodies, tag stripping, password left untouched
- reject_operator_keys: $-prefixed and dotted keys at any depth, nested values
- validate_registration: RegisterRequest field rules, all errors reported at once
- RequestPipeline: order of steps and short-circuit on the first failure
"""

import pytest

from auth.errors import AuthErrorCode, ValidationFailed
from auth.validation import (
    RegisterRequest,
    RequestPipeline,
    reject_operator_keys,
    registration_pipeline,
    sanitize_input,
    validate_registration,
)


def _fields(excinfo) -> set[str]:
    return {e["field"] for e in excinfo.value.errors}


class TestSanitize:
    @pytest.mark.parametrize("body", [None, [], "alice", 42])
    def test_non_object_rejected(self, body):
        with pytest.raises(ValidationFailed) as excinfo:
            sanitize_input(body)
        assert _fields(excinfo) == {"body"}

    def test_strips_tags_and_whitespace(self):
        out = sanitize_input({"username": "  <script>x</script>alice ", "email": " a@x.com"})
        assert out == {"username": "xalice", "email": "a@x.com"}

    def test_password_untouched(self):
        out = sanitize_input({"password": " <p>ss "})
        assert out["password"] == " <p>ss "

    def test_non_strings_pass_through(self):
        assert sanitize_input({"n": 3, "flag": True}) == {"n": 3, "flag": True}


class TestRejectOperatorKeys:
    def test_clean_body_passes(self):
        body = {"username": "alice", "email": "a@x.com", "password": "p1"}
        assert reject_operator_keys(body) is body

    def test_operator_value_rejected(self):
        with pytest.raises(ValidationFailed) as excinfo:
            reject_operator_keys({"email": {"$ne": ""}})
        assert _fields(excinfo) == {"email", "email.$ne"}

    def test_top_level_operator_key_rejected(self):
        with pytest.raises(ValidationFailed) as excinfo:
            reject_operator_keys({"$where": "1 == 1"})
        assert _fields(excinfo) == {"$where"}

    def test_dotted_key_rejected(self):
        with pytest.raises(ValidationFailed):
            reject_operator_keys({"profile.role": "admin"})

    def test_list_value_rejected(self):
        with pytest.raises(ValidationFailed) as excinfo:
            reject_operator_keys({"username": ["a", "b"]})
        assert _fields(excinfo) == {"username"}


class TestValidateRegistration:
    def test_valid(self):
        form = validate_registration({"username": "alice_1", "email": "a@x.com", "password": "p1"})
        assert isinstance(form, RegisterRequest)
        assert (form.username, form.email, form.password) == ("alice_1", "a@x.com", "p1")

    def test_unknown_keys_ignored(self):
        form = validate_registration({"username": "alice", "email": "a@x.com", "password": "p1", "role": "admin"})
        assert not hasattr(form, "role")

    def test_all_missing_reported_together(self):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_registration({})
        assert _fields(excinfo) == {"username", "email", "password"}
        assert excinfo.value.code == AuthErrorCode.VALIDATION_FAILED
        assert excinfo.value.status_code == 400

    @pytest.mark.parametrize("username", ["ab", "a" * 31, "has space", "dash-ed", 123])
    def test_bad_usernames(self, username):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_registration({"username": username, "email": "a@x.com", "password": "p1"})
        assert _fields(excinfo) == {"username"}

    @pytest.mark.parametrize(
        "email",
        [
            "nope",
            "a@b",
            "a b@x.com",
            "@x.com",
            "a@" + "x" * 260 + ".com",
            "a@x..com",
            "a@.x.com",
            "a..b@x.com",
            "a@x.com.",
        ],
    )
    def test_bad_emails(self, email):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_registration({"username": "alice", "email": email, "password": "p1"})
        assert _fields(excinfo) == {"email"}

    def test_password_too_long(self):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_registration({"username": "alice", "email": "a@x.com", "password": "x" * 129})
        assert _fields(excinfo) == {"password"}

    def test_empty_password_rejected(self):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_registration({"username": "alice", "email": "a@x.com", "password": ""})
        assert _fields(excinfo) == {"password"}

    def test_errors_carry_a_message_per_field(self):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_registration({"username": "ab", "email": "a@x.com", "password": "p1"})
        (error,) = excinfo.value.errors
        assert error["field"] == "username"
        assert error["message"]


class TestPipeline:
    def test_steps_run_in_order(self):
        calls = []

        def step(name):
            def _step(body):
                calls.append(name)
                return {**body, name: True}

            return _step

        out = RequestPipeline(step("a"), step("b")).run({})
        assert calls == ["a", "b"]
        assert out == {"a": True, "b": True}

    def test_short_circuit_skips_later_steps(self):
        reached = []
        pipeline = RequestPipeline(sanitize_input, lambda body: reached.append(body) or body)
        with pytest.raises(ValidationFailed):
            pipeline.run("not an object")
        assert reached == []

    def test_registration_pipeline_end_to_end(self):
        out = registration_pipeline.run({"username": " <i>alice</i> ", "email": "a@x.com", "password": "p1"})
        assert out.username == "alice"
