# src/ci_gatekeeper/core/defaults.py
"""
Default pipeline written by `gatekeeper init`.

Mirrors the code-check workflow of a Rust workspace that needs a Bitcoin
Core binary, the BitVM cache blobs, the RISC Zero toolchain and a Postgres
instance for its coverage run.
"""

from typing import Any

BITCOIN_VERSION = "29.0"
BITCOIN_PLATFORM = "x86_64-linux-gnu"


def default_config() -> dict[str, Any]:
    bitcoin = f"bitcoin-{BITCOIN_VERSION}"
    tarball = f"{bitcoin}-{BITCOIN_PLATFORM}.tar.gz"
    return {
        "version": "1.0",
        "cache": {"enabled": True, "directory": "~/.cache/gatekeeper"},
        "env": {
            "CARGO_TERM_COLOR": "always",
            "RUST_LOG": "warn,risc0_zkvm=error,risc0_circuit_rv32im=error",
            "RISC0_DEV_MODE": "1",
            "RUST_MIN_STACK": "33554432",
        },
        "artifacts": [
            {
                "name": "bitvm-cache",
                "cache_key": "bitvm-cache-v3",
                "url": "https://static.testnet.citrea.xyz/common/bitvm_cache_v3.bin",
                "filename": "bitvm_cache.bin",
                "target": "core",
                "paths": ["bitvm_cache.bin"],
            },
            {
                "name": "bitvm-cache-dev",
                "cache_key": "bitvm-cache-v3-dev",
                "url": "https://static.testnet.citrea.xyz/common/bitvm_cache_dev.bin",
                "target": "core",
                "paths": ["bitvm_cache_dev.bin"],
            },
            {
                "name": "bitcoin-core",
                "cache_key": f"{bitcoin}-{BITCOIN_PLATFORM}",
                "url": f"https://bitcoincore.org/bin/bitcoin-core-{BITCOIN_VERSION}/{tarball}",
                "unpack": "tar.gz",
                "target": ".",
                "bin_dir": f"{bitcoin}/bin",
                "executables": [f"{bitcoin}/bin/*"],
                "paths": [tarball, bitcoin],
            },
            {
                "name": "risc0",
                "cache_key": "risc0-rust-1.85.0",
                "installer": "https://risczero.com/install",
                "installer_args": [
                    'export PATH="$PATH:$HOME/.risc0/bin"',
                    "rzup install",
                    "rzup install rust 1.85.0",
                ],
                "target": "~/.risc0",
                "bin_dir": "bin",
                "timeout_seconds": 1800,
            },
        ],
        "services": [
            {
                "name": "postgres",
                "image": "postgres:latest",
                "env": {
                    "POSTGRES_DB": "clementine",
                    "POSTGRES_USER": "clementine",
                    "POSTGRES_PASSWORD": "clementine",
                    "POSTGRES_INITDB_ARGS": "-c shared_buffers=8GB -c max_connections=1000",
                },
                "ports": ["5432:5432"],
                "exclusive": True,
                "probe": {
                    "command": ["pg_isready", "-U", "clementine", "-d", "clementine"],
                    "interval": 2,
                    "retries": 10,
                },
            },
        ],
        "gates": [
            {
                "id": "fmt",
                "name": "Check formatting",
                "command": ["cargo", "fmt", "--check"],
                "artifacts": ["risc0"],
            },
            {
                "id": "clippy",
                "name": "Check linting",
                "command": [
                    "cargo", "clippy", "--no-deps", "--all-targets", "--", "-Dwarnings",
                ],
                "artifacts": ["risc0"],
            },
            {
                "id": "udeps",
                "name": "Check unused dependencies",
                "command": [
                    "cargo", "+nightly-2025-03-09", "udeps",
                    "--workspace", "--all-features", "--all-targets",
                ],
                "env": {"RUSTFLAGS": "-A warnings"},
                "artifacts": ["risc0"],
            },
            {
                "id": "coverage",
                "name": "Check code coverage percentage",
                "kind": "coverage",
                "command": [
                    "cargo", "llvm-cov", "--json", "--output-path", "lcov.json",
                ],
                "report": "lcov.json",
                "minimum": 80,
                "exclude": ["core/src/rpc/clementine.rs"],
                "artifacts": ["risc0", "bitcoin-core", "bitvm-cache", "bitvm-cache-dev"],
                "services": ["postgres"],
            },
            {
                "id": "todo",
                "name": "Check for TODO statements",
                "kind": "todo",
                "policy": "tolerated",
                "paths": ["."],
                "include": ["*.rs"],
            },
        ],
        "reports_dir": ".gatekeeper/reports",
    }
