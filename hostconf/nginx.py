"""
Nginx build options.

Optional stream modules are described by typed records, and the selection is
carried in an explicit ``NginxBuildOptions`` value instead of process-wide
state. ``configure_args`` turns the options into ``./configure`` arguments.
"""

from dataclasses import dataclass, field
from typing import List, Set

from hostconf.errors import ValidationError


@dataclass(frozen=True)
class StreamModule:
    name: str
    flag: str
    category: str
    description: str


STREAM_MODULES: List[StreamModule] = [
    StreamModule(
        "stream_ssl",
        "--with-stream_ssl_module",
        "Access control & security",
        "Layer 4 SSL/TLS termination (ssl_certificate, ssl_protocols)",
    ),
    StreamModule(
        "stream_ssl_preread",
        "--with-stream_ssl_preread_module",
        "Access control & security",
        "Read SNI/ALPN from ClientHello for routing without terminating TLS",
    ),
    StreamModule(
        "stream_realip",
        "--with-stream_realip_module",
        "Access control & security",
        "Real client address from the PROXY protocol",
    ),
    StreamModule(
        "stream_limit_conn",
        "--with-stream_limit_conn_module",
        "Access control & security",
        "Limit connections per key",
    ),
    StreamModule(
        "stream_geoip",
        "--with-stream_geoip_module=dynamic",
        "Monitoring, logging & geo",
        "GeoIP lookups (needs the GeoIP library)",
    ),
    StreamModule(
        "stream_split_clients",
        "--with-stream_split_clients_module",
        "Routing helpers",
        "Split traffic for A/B tests and canary releases",
    ),
    StreamModule(
        "stream_set",
        "--with-stream_set_module",
        "Routing helpers",
        "The set directive for variables",
    ),
    StreamModule(
        "stream_geo",
        "--with-stream_geo_module",
        "Monitoring, logging & geo",
        "Variables mapped from client IP ranges",
    ),
]

DEFAULT_STREAM_MODULES = ("stream_ssl", "stream_ssl_preread", "stream_realip")

BASE_CONFIGURE_FLAGS: List[str] = [
    "--with-http_ssl_module",
    "--with-http_realip_module",
    "--with-http_addition_module",
    "--with-http_sub_module",
    "--with-http_dav_module",
    "--with-http_flv_module",
    "--with-http_mp4_module",
    "--with-http_gunzip_module",
    "--with-http_gzip_static_module",
    "--with-http_random_index_module",
    "--with-http_secure_link_module",
    "--with-http_stub_status_module",
    "--with-http_auth_request_module",
    "--with-http_xslt_module=dynamic",
    "--with-http_image_filter_module=dynamic",
    "--with-http_geoip_module=dynamic",
    "--with-threads",
    "--with-stream",
    "--with-http_slice_module",
    "--with-file-aio",
    "--with-http_v2_module",
]

MAIL_CONFIGURE_FLAGS: List[str] = [
    "--with-mail",
    "--with-mail_ssl_module",
    "--with-mail_imap_module",
    "--with-mail_pop3_module",
    "--with-mail_smtp_module",
]


@dataclass
class NginxBuildOptions:
    prefix: str = "/usr/local/nginx"
    conf_path: str = "/etc/nginx/nginx.conf"
    pid_path: str = "/var/run/nginx.pid"
    log_path: str = "/var/log/nginx"
    stream_modules: Set[str] = field(default_factory=lambda: set(DEFAULT_STREAM_MODULES))
    mail_modules: bool = False

    def __post_init__(self) -> None:
        self.prefix = self.prefix.rstrip("/") or "/"
        self.log_path = self.log_path.rstrip("/") or "/"

    def enabled_modules(self) -> List[StreamModule]:
        return [m for m in STREAM_MODULES if m.name in self.stream_modules]


def parse_module_selection(selection: str, options: NginxBuildOptions) -> None:
    """
    Apply a menu answer to ``options``.

    ``all`` enables every module, ``default`` restores the defaults, ``skip``
    (or an empty answer) keeps the current set, and otherwise the answer is a
    space separated list of 1-based catalog numbers replacing the set.
    """
    answer = selection.strip().lower()
    if answer in ("", "skip"):
        return
    if answer == "all":
        options.stream_modules = {m.name for m in STREAM_MODULES}
        return
    if answer == "default":
        options.stream_modules = set(DEFAULT_STREAM_MODULES)
        return

    chosen = set()
    for token in answer.replace(",", " ").split():
        if not token.isdigit() or not 1 <= int(token) <= len(STREAM_MODULES):
            raise ValidationError(
                "stream modules",
                f"invalid module number {token!r}, choose 1-{len(STREAM_MODULES)}",
            )
        chosen.add(STREAM_MODULES[int(token) - 1].name)
    options.stream_modules = chosen


def configure_args(options: NginxBuildOptions) -> List[str]:
    args = [
        f"--prefix={options.prefix}",
        f"--conf-path={options.conf_path}",
        f"--pid-path={options.pid_path}",
        f"--error-log-path={options.log_path}/error.log",
        f"--http-log-path={options.log_path}/access.log",
    ]
    args.extend(BASE_CONFIGURE_FLAGS)
    args.extend(m.flag for m in options.enabled_modules())
    if options.mail_modules:
        args.extend(MAIL_CONFIGURE_FLAGS)
    return args
