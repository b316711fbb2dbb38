"""Tests for birthday imputation."""

from datetime import date

from cicpro.core.dates import years_between
from cicpro.core.streams import RandomStream
from cicpro.model.birthdays import (
    JoinerBirthdayParams,
    impute_birthdays,
    joiner_birthday,
    sample_birthday,
)
from cicpro.model.period import Episode, Period


def period(beginning, birth_year, birthday=None):
    return Period(
        period_id="P",
        beginning=beginning,
        episodes=(Episode(0, "A"),),
        birth_year=birth_year,
        duration=10,
        birthday=birthday,
    )


class TestSampleBirthday:
    """Test birthday sampling for historical periods."""

    def test_within_birth_year(self):
        """Birthdays fall in the recorded birth year."""
        p = period(date(2020, 5, 1), 2012)
        for stream in RandomStream.from_seed(1).split_n(50):
            assert sample_birthday(p, stream).year == 2012

    def test_not_after_admission(self):
        """Children admitted in their birth year are born by admission."""
        p = period(date(2020, 2, 10), 2020)
        for stream in RandomStream.from_seed(1).split_n(50):
            assert sample_birthday(p, stream) <= date(2020, 2, 10)

    def test_impute_keeps_known(self):
        """Known birthdays are kept; missing ones are filled."""
        known = period(date(2020, 5, 1), 2012, birthday=date(2012, 3, 3))
        unknown = period(date(2020, 5, 1), 2013)

        result = impute_birthdays([known, unknown], RandomStream.from_seed(3))

        assert result[0].birthday == date(2012, 3, 3)
        assert result[1].birthday is not None
        assert result[1].birthday.year == 2013


class TestJoinerBirthday:
    """Test birthdays for generated joiners."""

    def test_exact_age(self):
        """Joiners over one are exactly their admission age."""
        beginning = date(2021, 8, 9)
        birthday = joiner_birthday(7, beginning, RandomStream.from_seed(1))

        assert birthday == date(2014, 8, 9)
        assert years_between(birthday, beginning) == 7

    def test_infants_stay_age_zero(self):
        """Joiners under one are aged zero on admission."""
        beginning = date(2021, 8, 9)
        params = JoinerBirthdayParams(days=(0, 30, 200, 400))
        for stream in RandomStream.from_seed(2).split_n(50):
            birthday = joiner_birthday(0, beginning, stream, params)
            assert birthday <= beginning
            assert years_between(birthday, beginning) == 0
