"""
Security Scanner Tests
======================
Unit and integration tests for the SecurityScanner.

Covers:
  - SC101: hardcoded passwords/keys/tokens
  - SC102: secrets printed or logged
  - SC201: SQL built by formatting or concatenation
  - SC202: shell command execution
  - SC203: eval()/exec()
  - SC301: world-writable permissions
  - SC401: non-cryptographic random
  - SC501: weak hashes and ciphers
  - SC601: unsafe deserialization
  - SC701: plain-HTTP requests
"""

import json
import textwrap

import pytest

from code_insight.analyzers.security import SecurityScanner, is_placeholder, is_secret_name
from code_insight.contracts.load import validate_payload
from code_insight.model import Severity
from code_insight.tools.inputs import SourceInput
from code_insight.tools.manager import ToolManager


@pytest.fixture
def scanner():
    return SecurityScanner()


def scan(scanner, code: str, filename: str = "<code>") -> dict:
    payload = scanner.analyze(textwrap.dedent(code), filename)
    validate_payload("security_scanner", payload)
    return payload


def rule_ids(payload: dict) -> list[str]:
    return [issue["rule_id"] for issue in payload["issues"]]


# ============================================================================
# SC101 — hardcoded secrets
# ============================================================================

class TestHardcodedSecret:
    def test_password_in_function(self, scanner):
        """`password = "admin123"` inside a function → exactly one Critical SC101."""
        payload = scan(scanner, """
            def connect():
                password = "admin123"
                return password
        """)
        assert payload["total"] == 1
        issue = payload["issues"][0]
        assert issue["rule_id"] == "SC101"
        assert issue["severity"] == Severity.CRITICAL.value
        assert issue["function"] == "connect"
        assert issue["line"] == 3
        assert issue["code_snippet"] == 'password = "admin123"'

    def test_api_key(self, scanner):
        assert rule_ids(scan(scanner, 'api_key = "sk-1234567890abcdef"\n')) == ["SC101"]

    def test_camel_case_and_attribute(self, scanner):
        payload = scan(scanner, """
            dbPassword = "hunter2"
            self_config = object()
            self_config.secret_token = "abc123xyz789"
        """)
        assert rule_ids(payload) == ["SC101", "SC101"]

    def test_keyword_argument(self, scanner):
        assert rule_ids(scan(scanner, 'connect(user="bob", password="s3cret!")\n')) == ["SC101"]

    @pytest.mark.parametrize(
        "code",
        [
            'password = ""\n',
            'password = "changeme"\n',
            'api_key = "your-api-key"\n',
            'password = "${DB_PASSWORD}"\n',
            'password_field = "password"\n',
            'token_url = "https://example.com/token"\n',
            'password = os.environ["DB_PASSWORD"]\n',
        ],
    )
    def test_not_a_secret(self, scanner, code):
        assert "SC101" not in rule_ids(scan(scanner, code))

    def test_name_helpers(self):
        assert is_secret_name("DB_PASSWORD")
        assert is_secret_name("clientSecret")
        assert not is_secret_name("password_length")
        assert not is_secret_name("tokenizer")
        assert is_placeholder("xxxx")


# ============================================================================
# SC102 — information disclosure
# ============================================================================

class TestInfoDisclosure:
    def test_print_password(self, scanner):
        payload = scan(scanner, """
            def login(user, password):
                print("login", user, password)
        """)
        assert rule_ids(payload) == ["SC102"]
        assert payload["issues"][0]["severity"] == "Medium"

    def test_logger_token(self, scanner):
        payload = scan(scanner, """
            import logging
            logger = logging.getLogger(__name__)
            def refresh(session):
                logger.info("token=%s", session.access_token)
        """)
        assert rule_ids(payload) == ["SC102"]

    def test_harmless_log(self, scanner):
        assert scan(scanner, 'logger.info("user %s logged in", user)\n')["total"] == 0


# ============================================================================
# SC201 / SC202 / SC203 — injection
# ============================================================================

class TestInjection:
    @pytest.mark.parametrize(
        "code",
        [
            'cursor.execute("SELECT * FROM users WHERE id = " + user_id)\n',
            'cursor.execute("SELECT * FROM users WHERE id = %s" % user_id)\n',
            'cursor.execute(f"DELETE FROM users WHERE id = {user_id}")\n',
            'cursor.execute("UPDATE users SET name = \'{}\'".format(name))\n',
        ],
    )
    def test_sql_building(self, scanner, code):
        assert rule_ids(scan(scanner, code)) == ["SC201"]

    @pytest.mark.parametrize(
        "code",
        [
            'q = t + " WHERE id = " + uid\n',
            'q = "WHERE id = " + uid\n',
            'q = "SELECT " + cols + " FROM users WHERE id=" + uid\n',
            'q = "select * from users where name = \'" + name + "\'"\n',
        ],
    )
    def test_sql_concat_chain_reports_once(self, scanner, code):
        payload = scan(scanner, code)
        assert payload["total"] == 1
        assert rule_ids(payload) == ["SC201"]

    @pytest.mark.parametrize(
        "code",
        [
            'greeting = "Hello " + name\n',
            'q = "SELECT * " + "FROM users"\n',
            'label = "Created by " + author\n',
        ],
    )
    def test_concat_without_sql_is_safe(self, scanner, code):
        assert scan(scanner, code)["total"] == 0

    def test_parameterized_query_is_safe(self, scanner):
        assert scan(scanner, 'cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,))\n')["total"] == 0

    def test_non_sql_fstring_is_safe(self, scanner):
        assert scan(scanner, 'msg = f"Selected {count} items"\n')["total"] == 0

    @pytest.mark.parametrize(
        "code",
        [
            "import os\nos.system('ls ' + path)\n",
            "import subprocess\nsubprocess.run(cmd, shell=True)\n",
            "import subprocess\nsubprocess.Popen(cmd, shell=True)\n",
        ],
    )
    def test_shell_commands(self, scanner, code):
        payload = scan(scanner, code)
        assert rule_ids(payload) == ["SC202"]
        assert payload["issues"][0]["severity"] == "High"

    def test_subprocess_without_shell_is_safe(self, scanner):
        assert scan(scanner, "import subprocess\nsubprocess.run(['ls', path])\n")["total"] == 0

    def test_eval_and_exec(self, scanner):
        payload = scan(scanner, """
            result = eval(expr)
            exec(code)
        """)
        assert rule_ids(payload) == ["SC203", "SC203"]
        assert {i["severity"] for i in payload["issues"]} == {"Critical"}


# ============================================================================
# SC301 / SC401 / SC501 — files and crypto
# ============================================================================

class TestFilesAndCrypto:
    def test_world_writable_chmod(self, scanner):
        assert rule_ids(scan(scanner, "import os\nos.chmod(path, 0o777)\n")) == ["SC301"]

    def test_world_writable_path_mkdir(self, scanner):
        assert rule_ids(scan(scanner, "Path(d).mkdir(mode=0o777)\n")) == ["SC301"]

    def test_restrictive_mode_is_safe(self, scanner):
        assert scan(scanner, "import os\nos.chmod(path, 0o600)\n")["total"] == 0

    def test_weak_random(self, scanner):
        assert rule_ids(scan(scanner, "import random\ncode = random.randint(0, 9999)\n")) == ["SC401"]

    def test_secrets_module_is_safe(self, scanner):
        assert scan(scanner, "import secrets\ncode = secrets.randbelow(9999)\n")["total"] == 0

    @pytest.mark.parametrize(
        "code",
        [
            "import hashlib\nh = hashlib.md5(data)\n",
            "import hashlib\nh = hashlib.sha1(data)\n",
            "import hashlib\nh = hashlib.new('md5')\n",
            "from Crypto.Cipher import DES\nc = DES.new(key, DES.MODE_ECB)\n",
        ],
    )
    def test_weak_crypto(self, scanner, code):
        assert rule_ids(scan(scanner, code)) == ["SC501"]

    def test_md5_not_for_security(self, scanner):
        assert scan(scanner, "import hashlib\nh = hashlib.md5(data, usedforsecurity=False)\n")["total"] == 0


# ============================================================================
# SC601 / SC701 — deserialization and transport
# ============================================================================

class TestDeserializationAndTransport:
    @pytest.mark.parametrize(
        "code",
        [
            "import pickle\nobj = pickle.loads(blob)\n",
            "import yaml\ncfg = yaml.load(text)\n",
            "import yaml\ncfg = yaml.load(text, Loader=yaml.Loader)\n",
        ],
    )
    def test_unsafe(self, scanner, code):
        assert rule_ids(scan(scanner, code)) == ["SC601"]

    @pytest.mark.parametrize(
        "code",
        [
            "import yaml\ncfg = yaml.safe_load(text)\n",
            "import yaml\ncfg = yaml.load(text, Loader=yaml.SafeLoader)\n",
            "import json\ncfg = json.loads(text)\n",
        ],
    )
    def test_safe(self, scanner, code):
        assert scan(scanner, code)["total"] == 0

    def test_plain_http(self, scanner):
        payload = scan(scanner, "import requests\nr = requests.get('http://api.example.com/data')\n")
        assert rule_ids(payload) == ["SC701"]

    def test_https_and_localhost_are_safe(self, scanner):
        payload = scan(scanner, """
            import requests
            a = requests.get("https://api.example.com/data")
            b = requests.get("http://localhost:8000/health")
        """)
        assert payload["total"] == 0


# ============================================================================
# PAYLOAD
# ============================================================================

class TestPayload:
    def test_safe_code_summary(self, scanner):
        """Safe code → total 0 and a success summary."""
        payload = scan(scanner, """
            import hashlib
            import os
            import requests

            def store(conn, user_id, data, path):
                digest = hashlib.sha256(data).hexdigest()
                conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
                requests.post("https://api.example.com/items", json={"d": digest})
                os.chmod(path, 0o600)
                return digest
        """)
        assert payload["total"] == 0
        assert payload["issues"] == []
        assert payload["summary"] == "No security issues found. The code follows secure coding practices."
        assert payload["statistics"]["total_issues"] == 0

    def test_summary_counts_severities(self, scanner):
        payload = scan(scanner, """
            password = "admin123"
            import random
            n = random.random()
        """)
        assert payload["summary"] == "Found 2 security issues: 1 Critical, 1 High."
        assert payload["statistics"] == {"total_issues": 2, "critical": 1, "high": 1, "medium": 0, "low": 0}

    def test_filename_hash_in_ids(self, scanner):
        payload = scan(scanner, 'password = "admin123"\n', filename="app/settings.py")
        issue = payload["issues"][0]
        assert issue["file"] == "app/settings.py"
        assert issue["id"].startswith("SEC-0-SC101-")

    def test_form_feed_does_not_shift_lines(self, scanner):
        """A form feed is whitespace to Python, not a line break."""
        payload = scanner.analyze("x = 1\n\x0c\ndef f():\n    password = 'admin123'\n", "<code>")
        validate_payload("security_scanner", payload)
        issue = payload["issues"][0]
        assert issue["rule_id"] == "SC101"
        assert issue["line"] == 4
        assert issue["code_snippet"] == "password = 'admin123'"
        assert issue["id"].startswith("SEC-21-SC101")

    def test_repeat_scans_match(self, scanner):
        code = 'password = "admin123"\neval(x)\n'
        assert scan(scanner, code) == scan(scanner, code)

    def test_through_manager(self):
        manager = ToolManager()
        manager.register(SecurityScanner())
        result = manager.run("security_scanner", SourceInput('token = "abcdef123456"\n', "a.py"))
        assert result.success
        payload = json.loads(result.result)
        assert payload["total"] == 1
        assert payload["file"] == "a.py"
