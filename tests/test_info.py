import pytest

from p4scm_core.errors import CommandFailed, InvalidRecordShape
from p4scm_ops.info import detect_client_root, fetch_info, parse_info_output

INFO_TEXT = """\
User name: alice
Client name: alice-main
Client host: build01
Client root: /home/alice/p4/main
Current directory: /home/alice/p4/main/src
Peer address: 10.0.0.5:53012
Client address: 10.0.0.5
Server address: ssl:perforce.example.com:1666
Server root: /p4/root
Server version: P4D/LINUX26X86_64/2023.1/2468153 (2023/06/12)
Server license: Example Corp 50 users (expires 2027/01/01)
Case Handling: sensitive
"""


def test_parse_info_output() -> None:
    info = parse_info_output(INFO_TEXT)
    assert info.user_name == "alice"
    assert info.client_name == "alice-main"
    assert info.client_host == "build01"
    assert info.client_root == "/home/alice/p4/main"
    assert info.server_address == "ssl:perforce.example.com:1666"
    assert info.server_version.startswith("P4D/LINUX26X86_64/2023.1")
    assert info.server_license.startswith("Example Corp")
    assert info.case_handling == "sensitive"


def test_missing_client_name_is_invalid() -> None:
    with pytest.raises(InvalidRecordShape, match="Client name"):
        parse_info_output("User name: alice\nServer address: perforce:1666\n")


@pytest.mark.asyncio
async def test_fetch_info_uses_plain_output(fake_executor) -> None:
    fake_executor.on("info", [], stdout=INFO_TEXT.encode())
    info = await fetch_info(fake_executor)
    assert info.client_name == "alice-main"
    assert fake_executor.calls == [("info", (), False)]


@pytest.mark.asyncio
async def test_detect_client_root(fake_executor) -> None:
    fake_executor.on("info", [], stdout=INFO_TEXT.encode())
    assert await detect_client_root(fake_executor) == "/home/alice/p4/main"


@pytest.mark.asyncio
async def test_detect_client_root_outside_workspace(fake_executor) -> None:
    fake_executor.on("info", [], error=CommandFailed("info", [], "Connect to server failed", 1))
    assert await detect_client_root(fake_executor) is None

    fake_executor.on("info", [], stdout=b"User name: alice\nClient unknown.\n")
    assert await detect_client_root(fake_executor) is None
