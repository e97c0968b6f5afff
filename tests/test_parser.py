import unittest

from parameterized import parameterized

from mksyscall.errors import ParseError
from mksyscall.model import Param, derive_call_id
from mksyscall.parser import (
    is_prototype,
    parse_package_clause,
    parse_prototype,
    scan_lines,
)


class TestPrototypeParser(unittest.TestCase):
    def test_parses_name_params_and_returns(self):
        fn = parse_prototype("//sys\topen(path string, mode int, perm uint32) (fd int, err error)")
        self.assertEqual(fn.name, "open")
        self.assertEqual(
            fn.params,
            (Param("path", "string"), Param("mode", "int"), Param("perm", "uint32")),
        )
        self.assertEqual(fn.rets, (Param("fd", "int"), Param("err", "error")))
        self.assertEqual(fn.call_id, "SYS_OPEN")
        self.assertTrue(fn.blocking)

    @parameterized.expand(
        [
            ("sysnb", "//sysnb\tgetpid() (pid int)"),
            ("sys_nonblocking", "//sys-nonblocking getpid() (pid int)"),
        ]
    )
    def test_nonblocking_prefixes(self, _, line):
        fn = parse_prototype(line)
        self.assertFalse(fn.blocking)
        self.assertEqual(fn.name, "getpid")

    def test_call_id_override(self):
        fn = parse_prototype("//sys\tlseek(fd int, offset int64, whence int) (off int64, err error) = SYS_LSEEK64")
        self.assertEqual(fn.call_id, "SYS_LSEEK64")
        self.assertEqual(fn.rets[0], Param("off", "int64"))

    def test_qualified_call_id_override(self):
        fn = parse_prototype("//sys fstat(fd int, st *Stat_t) (err error) = syscall.SYS_FSTAT")
        self.assertEqual(fn.call_id, "syscall.SYS_FSTAT")

    def test_return_list_is_optional(self):
        fn = parse_prototype("//sys\tsync()")
        self.assertEqual(fn.params, ())
        self.assertEqual(fn.rets, ())

    def test_tab_separated_elements(self):
        fn = parse_prototype("//sys read(fd\tint, p\t[]byte) (n int, err error)")
        self.assertEqual(fn.params, (Param("fd", "int"), Param("p", "[]byte")))

    def test_array_pointer_types_survive(self):
        fn = parse_prototype("//sysnb pipe(p *[2]_C_int) (err error)")
        self.assertEqual(fn.params, (Param("p", "*[2]_C_int"),))

    @parameterized.expand(
        [
            ("missing_type", "//sys open(path) (fd int)", "could not extract function parameter"),
            ("three_tokens", "//sys open(path string int)", "could not extract function parameter"),
            ("unmatched_params", "//sys open(path string", "unmatched"),
            ("unmatched_returns", "//sys open(path string) (fd int", "unmatched"),
            ("no_name", "//sys (fd int)", "missing function name"),
            ("no_parens", "//sys open", "could not extract function name"),
            ("too_many_returns", "//sys f() (a int, b int, c int, err error)", "too many return values"),
            ("error_misnamed", "//sys f() (n int, errno error)", "must be named 'err'"),
            ("two_errors", "//sys f() (err error, err error)", "only one error"),
            ("error_not_last", "//sys f() (err error, n int)", "must be the last"),
            ("err_wrong_type", "//sys f() (err int)", "must have type error"),
            ("trailing_text", "//sys f() (n int) junk", "unexpected text"),
            ("text_between_lists", "//sys f() junk (n int)", "unexpected text"),
        ]
    )
    def test_rejects_malformed(self, _, line, message):
        with self.assertRaises(ParseError) as cm:
            parse_prototype(line, origin="syscall_test.go:7")
        self.assertIn(message, str(cm.exception))
        self.assertIn("syscall_test.go:7", str(cm.exception))

    def test_rejects_non_prototype(self):
        with self.assertRaises(ParseError):
            parse_prototype("// just a comment")

    @parameterized.expand(
        [
            ("sys", "//sys\topen(path string) (fd int, err error)", True),
            ("indented", "\t//sys open(path string) (fd int, err error)", True),
            ("sysnb", "//sysnb getpid() (pid int)", True),
            ("long_form", "//sys-nonblocking getpid() (pid int)", True),
            ("no_separator", "//system call notes", False),
            ("spaced_comment", "// sys open()", False),
            ("code", "func open() {}", False),
            ("bare_prefix", "//sys", False),
        ]
    )
    def test_is_prototype(self, _, line, expected):
        self.assertEqual(is_prototype(line), expected)


class TestCallIdDerivation(unittest.TestCase):
    @parameterized.expand(
        [
            ("open", "SYS_OPEN"),
            ("getpid", "SYS_GETPID"),
            ("getDirEntries", "SYS_GET_DIR_ENTRIES"),
            ("Fchmodat", "SYS_FCHMODAT"),
            ("pipe2", "SYS_PIPE2"),
        ]
    )
    def test_derives_upper_snake_case(self, name, expected):
        self.assertEqual(derive_call_id(name), expected)


class TestScanning(unittest.TestCase):
    def test_scan_lines_keeps_order_and_origin(self):
        source = [
            "package unix",
            "",
            "//sys\tclose(fd int) (err error)",
            "func helper() {}",
            "//sysnb\tgetpid() (pid int)",
        ]
        fns = list(scan_lines(source, source="syscall_linux.go"))
        self.assertEqual([f.name for f in fns], ["close", "getpid"])
        self.assertEqual(fns[0].origin, "syscall_linux.go:3")
        self.assertEqual(fns[1].origin, "syscall_linux.go:5")

    def test_scan_lines_stops_at_first_bad_prototype(self):
        source = ["//sys\tclose(fd int) (err error)", "//sys\tbroken(fd) (err error)"]
        with self.assertRaises(ParseError) as cm:
            list(scan_lines(source, source="a.go"))
        self.assertIn("a.go:2", str(cm.exception))

    @parameterized.expand(
        [
            ("plain", "package unix", "unix"),
            ("comment", "package syscall // import \"syscall\"", "syscall"),
            ("not_package", "packages are nice", None),
            ("other", "import \"unsafe\"", None),
        ]
    )
    def test_package_clause(self, _, line, expected):
        self.assertEqual(parse_package_clause(line), expected)
