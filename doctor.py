#!/usr/bin/env python3
"""Doctor Script - Validate the rendezvous installation

This script checks that the packages are importable and that the environment
allows the loopback sockets the bootstrap depends on.
"""

import socket
import sys

# ANSI color codes
GREEN = '\033[92m'
RED = '\033[91m'
YELLOW = '\033[93m'
RESET = '\033[0m'
BOLD = '\033[1m'


def check_python_version() -> tuple[bool, str]:
    """Check if Python version meets requirements."""
    required_version = (3, 9)
    current_version = sys.version_info[:2]

    if current_version >= required_version:
        return True, f"Python {sys.version.split()[0]}"
    else:
        return False, f"Python {sys.version.split()[0]} (requires >= 3.9)"


def check_module(module_name: str, import_name: str = None) -> tuple[bool, str]:
    """Check if a module is installed and importable."""
    if import_name is None:
        import_name = module_name

    try:
        __import__(import_name)
        return True, module_name
    except ImportError:
        return False, module_name


def check_package_installed(package: str) -> tuple[bool, str]:
    """Check if one of the rendezvous packages imports."""
    try:
        module = __import__(package)
    except ImportError:
        return False, f"{package} (NOT INSTALLED)"
    return True, f"{package} (from {module.__file__})"


def check_rendezvous_components() -> list[tuple[bool, str]]:
    """Check if all bootstrap components are accessible."""
    components = [
        ('PortAllocator', 'rendezvous_client.port_allocator'),
        ('RendezvousListener', 'rendezvous_client.listener'),
        ('ConnectionBootstrapper', 'rendezvous_client.bootstrap'),
        ('HostSession', 'rendezvous_client.host'),
        ('SubprocessLauncher', 'rendezvous_server.launcher'),
    ]

    results = []
    for name, module in components:
        try:
            __import__(module)
            results.append((True, name))
        except ImportError as e:
            results.append((False, f"{name} ({str(e)})"))

    return results


def check_loopback_bind() -> tuple[bool, str]:
    """Check that a listening socket can be opened on 127.0.0.1."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            port = sock.getsockname()[1]
    except OSError as e:
        return False, f"127.0.0.1 listen ({e})"
    return True, f"127.0.0.1 listen (port {port})"


def _print_result(passed: bool, msg: str, optional: bool = False) -> None:
    if passed:
        status = f"{GREEN}✓{RESET}"
    else:
        status = f"{YELLOW}○{RESET}" if optional else f"{RED}✗{RESET}"
    print(f"   {status} {msg}")


def main():
    """Run all checks and report results."""
    print(f"{BOLD}Rendezvous Installation Doctor{RESET}")
    print("=" * 60)
    print(f"Using Python: {sys.executable}")
    print()

    all_passed = True

    print(f"{BOLD}1. Python Version{RESET}")
    passed, msg = check_python_version()
    _print_result(passed, msg)
    all_passed = all_passed and passed
    print()

    print(f"{BOLD}2. Packages{RESET}")
    for package in ("rendezvous_shared", "rendezvous_client", "rendezvous_server"):
        passed, msg = check_package_installed(package)
        _print_result(passed, msg)
        all_passed = all_passed and passed
    print()

    print(f"{BOLD}3. Components{RESET}")
    for passed, msg in check_rendezvous_components():
        _print_result(passed, msg)
        all_passed = all_passed and passed
    print()

    print(f"{BOLD}4. Loopback Sockets{RESET}")
    passed, msg = check_loopback_bind()
    _print_result(passed, msg)
    all_passed = all_passed and passed
    print()

    print(f"{BOLD}5. Development Dependencies (Optional){RESET}")
    dev_deps = [
        ('pytest', 'pytest'),
        ('hypothesis', 'hypothesis'),
    ]
    for module_name, import_name in dev_deps:
        passed, msg = check_module(module_name, import_name)
        _print_result(passed, msg, optional=True)
    print()

    print("=" * 60)
    if all_passed:
        print(f"{GREEN}{BOLD}✓ All required checks passed!{RESET}")
        return 0

    print(f"{RED}{BOLD}✗ Some checks failed.{RESET}")
    print()
    print("Common issues:")
    print("  1. Package installed with different Python version")
    print(f"     Current Python: {sys.executable}")
    print("     Solution: pip install -e .")
    print()
    print("  2. Sandbox forbids local sockets")
    print("     Solution: allow binding 127.0.0.1 for this process")
    return 1


if __name__ == "__main__":
    sys.exit(main())
