from __future__ import annotations

import unittest

from hashmem.hashing import encode_tokens, hash_tokens
from hashmem.tokens import Token, TokenEntry, TokenHits, detokenize, tokenize


class TokenizerTests(unittest.TestCase):
    def test_one_token_per_character(self) -> None:
        text = "héllo\n\t✓"
        tokens = tokenize(text)
        self.assertEqual(len(tokens), len(text))
        self.assertEqual(detokenize(tokens), text)
        self.assertTrue(all(token.is_char for token in tokens))

    def test_empty_text(self) -> None:
        self.assertEqual(tokenize(""), [])

    def test_tokens_compare_structurally(self) -> None:
        self.assertEqual(Token.char("a"), tokenize("a")[0])
        self.assertNotEqual(Token.char("1"), Token.num(1))
        self.assertEqual(len({Token.char("a"), Token.char("a"), Token.num(7)}), 2)

    def test_constructors_validate(self) -> None:
        with self.assertRaises(ValueError):
            Token.char("ab")
        with self.assertRaises(ValueError):
            Token.num(-1)
        with self.assertRaises(ValueError):
            Token.num(2**64)


class TokenHitsTests(unittest.TestCase):
    def test_note_merges_by_value(self) -> None:
        hits = TokenHits()
        self.assertEqual(hits.note(Token.char("a")), 1)
        self.assertEqual(hits.note(Token.char("b")), 1)
        self.assertEqual(hits.note(Token.char("a")), 2)
        self.assertEqual(len(hits), 2)
        self.assertEqual(hits.as_dict(), {Token.char("a"): 2, Token.char("b"): 1})
        self.assertEqual(hits.total(), 3)

    def test_constructor_collapses_duplicates(self) -> None:
        hits = TokenHits([TokenEntry(Token.char("x"), 2), TokenEntry(Token.char("x"), 3)])
        self.assertEqual(len(hits), 1)
        self.assertEqual(hits.count_of(Token.char("x")), 5)

    def test_merge_and_copy_are_independent(self) -> None:
        left = TokenHits()
        left.note(Token.char("a"))
        right = left.copy()
        right.note(Token.char("a"))
        right.note(Token.num(3), 4)
        self.assertEqual(left.count_of(Token.char("a")), 1)
        left.merge(right)
        self.assertEqual(left.count_of(Token.char("a")), 3)
        self.assertEqual(left.count_of(Token.num(3)), 4)

    def test_empty_table_is_falsy(self) -> None:
        self.assertFalse(TokenHits())
        self.assertEqual(TokenHits().count_of(Token.char("z")), 0)


class HashingTests(unittest.TestCase):
    def test_hash_is_stable_hex_digest(self) -> None:
        digest = hash_tokens(tokenize("abc"))
        self.assertEqual(digest, hash_tokens(tokenize("abc")))
        self.assertEqual(len(digest), 64)
        int(digest, 16)

    def test_distinct_sequences_hash_differently(self) -> None:
        samples = ["", "a", "b", "ab", "ba", "aa", "a\x00", "\x00a"]
        digests = {hash_tokens(tokenize(sample)) for sample in samples}
        self.assertEqual(len(digests), len(samples))

    def test_encoding_is_not_plain_concatenation(self) -> None:
        as_chars = [Token.char("1"), Token.char("2")]
        as_numbers = [Token.num(1), Token.num(2)]
        self.assertNotEqual(encode_tokens(as_chars), encode_tokens(as_numbers))
        self.assertNotEqual(encode_tokens([Token.num(12)]), encode_tokens(as_numbers))

    def test_empty_context_has_a_key(self) -> None:
        self.assertEqual(encode_tokens([]), b"\x00\x00\x00\x00")
        self.assertEqual(len(hash_tokens([])), 64)


if __name__ == "__main__":
    unittest.main()
