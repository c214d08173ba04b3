from triplog.api.csv_parser import parse_csv


def test_quoted_field_keeps_comma_and_newline():
    rows = parse_csv('a,"hello, world\nsecond line",c\n')
    assert rows == [["a", "hello, world\nsecond line", "c"]]


def test_doubled_quote_is_literal_quote():
    rows = parse_csv('"say ""ciao""",x')
    assert rows == [['say "ciao"', "x"]]


def test_crlf_and_lf_both_split_rows():
    rows = parse_csv("a,b\r\nc,d\ne,f")
    assert rows == [["a", "b"], ["c", "d"], ["e", "f"]]


def test_blank_and_whitespace_rows_are_dropped():
    rows = parse_csv("a,b\n\n , \n,,\nc,d\n")
    assert rows == [["a", "b"], ["c", "d"]]


def test_last_row_without_terminator_is_emitted():
    assert parse_csv("h1,h2\nv1,v2") == [["h1", "h2"], ["v1", "v2"]]


def test_trailing_empty_field_is_kept():
    assert parse_csv("a,b,\n") == [["a", "b", ""]]


def test_unterminated_quote_swallows_rest_of_input():
    rows = parse_csv('a,"open field\nstill, inside')
    assert rows == [["a", "open field\nstill, inside"]]


def test_empty_text_gives_no_rows():
    assert parse_csv("") == []
    assert parse_csv("\r\n\n") == []


def test_field_and_row_order_mirror_input():
    rows = parse_csv("3,2,1\nz,y,x\n")
    assert rows == [["3", "2", "1"], ["z", "y", "x"]]
