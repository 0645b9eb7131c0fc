import signal

import pytest

from ocirt.signals import to_signal

CASES = {
    signal.SIGHUP: ["1", "HUP", "SIGHUP"],
    signal.SIGINT: ["2", "INT", "SIGINT"],
    signal.SIGQUIT: ["3", "QUIT", "SIGQUIT"],
    signal.SIGILL: ["4", "ILL", "SIGILL"],
    signal.SIGBUS: ["5", "BUS", "SIGBUS"],
    signal.SIGABRT: ["6", "ABRT", "IOT", "SIGABRT", "SIGIOT"],
    signal.SIGTRAP: ["7", "TRAP", "SIGTRAP"],
    signal.SIGFPE: ["8", "FPE", "SIGFPE"],
    signal.SIGKILL: ["9", "KILL", "SIGKILL"],
    signal.SIGUSR1: ["10", "USR1", "SIGUSR1"],
    signal.SIGSEGV: ["11", "SEGV", "SIGSEGV"],
    signal.SIGUSR2: ["12", "USR2", "SIGUSR2"],
    signal.SIGPIPE: ["13", "PIPE", "SIGPIPE"],
    signal.SIGALRM: ["14", "ALRM", "SIGALRM"],
    signal.SIGTERM: ["15", "TERM", "SIGTERM"],
    signal.SIGSTKFLT: ["16", "STKFLT", "SIGSTKFLT"],
    signal.SIGCHLD: ["17", "CHLD", "SIGCHLD"],
    signal.SIGCONT: ["18", "CONT", "SIGCONT"],
    signal.SIGSTOP: ["19", "STOP", "SIGSTOP"],
    signal.SIGTSTP: ["20", "TSTP", "SIGTSTP"],
    signal.SIGTTIN: ["21", "TTIN", "SIGTTIN"],
    signal.SIGTTOU: ["22", "TTOU", "SIGTTOU"],
    signal.SIGURG: ["23", "URG", "SIGURG"],
    signal.SIGXCPU: ["24", "XCPU", "SIGXCPU"],
    signal.SIGXFSZ: ["25", "XFSZ", "SIGXFSZ"],
    signal.SIGVTALRM: ["26", "VTALRM", "SIGVTALRM"],
    signal.SIGPROF: ["27", "PROF", "SIGPROF"],
    signal.SIGWINCH: ["28", "WINCH", "SIGWINCH"],
    signal.SIGIO: ["29", "IO", "SIGIO"],
    signal.SIGPWR: ["30", "PWR", "SIGPWR"],
    signal.SIGSYS: ["31", "SYS", "SIGSYS"],
}

PAIRS = [(sig, name) for sig, names in CASES.items() for name in names]


@pytest.mark.parametrize(("expected", "text"), PAIRS)
def test_conversion_from_string(expected, text):
    assert to_signal(text) == expected


@pytest.mark.parametrize(("expected", "text"), PAIRS)
def test_conversion_ignores_case(expected, text):
    assert to_signal(text.lower()) == expected


def test_conversion_from_string_should_be_failed():
    with pytest.raises(ValueError, match="invalid is not a valid signal"):
        to_signal("invalid")


def test_number_out_of_range_fails():
    with pytest.raises(ValueError):
        to_signal("32")