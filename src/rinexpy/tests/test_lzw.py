"""
test for compressed files: LZW .Z, gzip, bzip2, zip
"""

from pathlib import Path
import bz2
import gzip
import zipfile
import logging
import pytest

import rinexpy as rp

R = Path(__file__).parent / "data"


def test_obs2_lzw(tmp_path):
    ncompress = pytest.importorskip("ncompress")

    fn = tmp_path / "demo2.10o.Z"
    fn.write_bytes(ncompress.compress((R / "demo2.10o").read_bytes()))

    obs = rp.load(fn)

    hdr = rp.rinexheader(fn)

    assert hdr.first_epoch.datetime <= rp.to_datetime(obs.time[0])
    assert rp.Rinex.from_file(fn) == rp.Rinex.from_file(R / "demo2.10o")


@pytest.mark.parametrize("suffix", [".gz", ".bz2"])
def test_stream_compressed(tmp_path, suffix):
    src = R / "demo3.10n"
    fn = tmp_path / f"demo3.10n{suffix}"
    if suffix == ".gz":
        with gzip.open(fn, "wb") as f:
            f.write(src.read_bytes())
    else:
        fn.write_bytes(bz2.compress(src.read_bytes()))

    assert rp.rinexinfo(fn)["rinextype"] == "nav"
    assert rp.Rinex.from_file(fn) == rp.Rinex.from_file(src)


def test_zip(tmp_path, caplog):
    fn = tmp_path / "demo.zip"
    with zipfile.ZipFile(fn, "w") as z:
        z.write(R / "demo2.96m", "demo2.96m")
        z.write(R / "demo3.17c", "demo3.17c")

    with caplog.at_level(logging.WARNING):
        rnx = rp.Rinex.from_file(fn)

    assert rnx.header.rinex_type == rp.RinexType.METEO
    assert "only" in caplog.text


def test_write_gzip(tmp_path):
    rnx = rp.Rinex.from_file(R / "demo3.17c")

    fn = rnx.to_file(tmp_path / "out.17c.gz")
    with fn.open("rb") as f:
        assert f.read(2) == b"\x1f\x8b"

    assert rp.Rinex.from_file(fn) == rnx


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        rp.Rinex.from_file(tmp_path / "nothing.10o")


if __name__ == "__main__":
    pytest.main([__file__])
