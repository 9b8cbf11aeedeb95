# Shared pytest fixtures for hostconf tests

import logging

import pytest

MYSQLD_CNF = """\
# The MySQL database server configuration file.
[mysqld]
user            = mysql
#bind-address   = 127.0.0.1
max_connections = 151

[client]
port = 3306
"""

SSHD_CONFIG = """\
Include /etc/ssh/sshd_config.d/*.conf
Port 22
#PermitRootLogin prohibit-password
#PubkeyAuthentication yes
PasswordAuthentication yes
Subsystem sftp /usr/lib/openssh/sftp-server
"""


@pytest.fixture(autouse=True)
def quiet_hostconf_logger():
    # Keep handlers installed by one CLI test from leaking into the next
    yield
    logger = logging.getLogger("hostconf")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def empty_cnf(tmp_path):
    path = tmp_path / "my.cnf"
    path.write_text("")
    return path


@pytest.fixture
def mysqld_cnf(tmp_path):
    path = tmp_path / "mysqld.cnf"
    path.write_text(MYSQLD_CNF)
    return path


@pytest.fixture
def sshd_config(tmp_path):
    path = tmp_path / "sshd_config"
    path.write_text(SSHD_CONFIG)
    return path


@pytest.fixture
def public_key():
    return "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIMockKeyForTestsOnly user@host"
