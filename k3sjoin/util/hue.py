"""
Terminal colors and message prefixes used by the logger and the CLI.
"""
import sys

COLORS = {
    'white': '97',
    'grey': '90',
    'red': '91',
    'green': '92',
    'yellow': '93',
    'blue': '94',
    'cyan': '96',
    'lightgreen': '92;1',
    'lightcyan': '96;1',
}


def _paint(code, text):
    if not sys.stdout.isatty():
        return text
    return '\033[%sm%s\033[0m' % (code, text)


def bold(text):
    """make text bold"""
    return _paint('1', text)


def red(text):
    """color text red"""
    return _paint(COLORS['red'], text)


def green(text):
    """color text green"""
    return _paint(COLORS['green'], text)


def yellow(text):
    """color text yellow"""
    return _paint(COLORS['yellow'], text)


def grey(text):
    """color text grey"""
    return _paint(COLORS['grey'], text)


def lightcyan(text):
    """color text light cyan"""
    return _paint(COLORS['lightcyan'], text)


def bad(text):
    """prefix an error message"""
    return "[-] " + text


def info(text):
    """prefix a warning message"""
    return "[!] " + text


def run(text):
    """prefix a progress message"""
    return "[~] " + text


def good(text):
    """prefix a success message"""
    return "[+] " + text


def que(text):
    """prefix a question"""
    return "[?] " + text
