# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Random access to a remote file over HTTP Range requests.

`HTTPRangeReader` is a seekable, read-only binary file. `zipfile.ZipFile`
only touches the end of central directory, the central directory and the
members it is asked for, so opening a module archive through this reader
transfers a small fraction of the archive.
"""

from __future__ import annotations

import io
import re
import socket
import urllib.error
import urllib.request

from gomarshal.errors import SourceUnavailable
from gomarshal.log import get_logger

logger = get_logger("gomod.httprange")

DEFAULT_BLOCK_SIZE = 64 * 1024
_USER_AGENT = "gomarshal/0.1"
_CONTENT_RANGE_RE = re.compile(r"bytes\s+(\d+)-(\d+)/(\d+|\*)")


class HTTPRangeReader(io.RawIOBase):
	def __init__(self, url: str, *, timeout: float = 30.0, block_size: int = DEFAULT_BLOCK_SIZE) -> None:
		super().__init__()
		self.url = url
		self.timeout = timeout
		self.block_size = block_size
		self._pos = 0
		self._blocks: dict[int, bytes] = {}
		self.requests = 0
		self.length = self._probe_length()

	def __repr__(self) -> str:
		return f"HTTPRangeReader({self.url!r}, length={self.length})"

	def _open(self, method: str, headers: dict[str, str] | None = None):
		req = urllib.request.Request(self.url, method=method, headers={"User-Agent": _USER_AGENT, **(headers or {})})
		self.requests += 1
		try:
			return urllib.request.urlopen(req, timeout=self.timeout)
		except urllib.error.HTTPError as err:
			raise SourceUnavailable(f"HTTP {err.code} fetching {self.url}", path=self.url) from err
		except urllib.error.URLError as err:
			raise SourceUnavailable(f"cannot reach {self.url}: {err.reason}", path=self.url) from err
		except (socket.timeout, TimeoutError) as err:
			raise SourceUnavailable(f"timed out fetching {self.url}", path=self.url) from err
		except OSError as err:
			raise SourceUnavailable(f"error fetching {self.url}: {err}", path=self.url) from err

	def _read_body(self, resp) -> bytes:
		try:
			return resp.read()
		except (socket.timeout, TimeoutError) as err:
			raise SourceUnavailable(f"timed out reading {self.url}", path=self.url) from err
		except OSError as err:
			raise SourceUnavailable(f"error reading {self.url}: {err}", path=self.url) from err

	def _probe_length(self) -> int:
		with self._open("HEAD") as resp:
			self.url = resp.geturl()
			length = resp.headers.get("Content-Length")
		if length is not None and length.isdigit():
			return int(length)
		# No length on HEAD: ask for the first byte and read the total from Content-Range.
		with self._open("GET", {"Range": "bytes=0-0"}) as resp:
			match = _CONTENT_RANGE_RE.match(resp.headers.get("Content-Range", ""))
			if resp.status == 206 and match and match.group(3) != "*":
				return int(match.group(3))
			body = self._read_body(resp)
		self._store_whole(body)
		return len(body)

	def _store_whole(self, body: bytes) -> None:
		for index in range(0, max(len(body), 1), self.block_size):
			self._blocks[index // self.block_size] = body[index:index + self.block_size]

	def _block(self, index: int) -> bytes:
		cached = self._blocks.get(index)
		if cached is not None:
			return cached
		start = index * self.block_size
		end = min(start + self.block_size, self.length) - 1
		logger.debug("range fetch %s bytes=%d-%d", self.url, start, end)
		with self._open("GET", {"Range": f"bytes={start}-{end}"}) as resp:
			status = resp.status
			body = self._read_body(resp)
		if status == 200:
			# Server ignored the range and sent the whole file.
			if len(body) != self.length:
				raise SourceUnavailable(f"length of {self.url} changed during read", path=self.url)
			self._store_whole(body)
			return self._blocks[index]
		if status != 206 or len(body) != end - start + 1:
			raise SourceUnavailable(f"bad range response from {self.url} (status {status})", path=self.url)
		self._blocks[index] = body
		return body

	def readable(self) -> bool:
		return True

	def seekable(self) -> bool:
		return True

	def tell(self) -> int:
		return self._pos

	def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
		if whence == io.SEEK_SET:
			pos = offset
		elif whence == io.SEEK_CUR:
			pos = self._pos + offset
		elif whence == io.SEEK_END:
			pos = self.length + offset
		else:
			raise ValueError(f"invalid whence: {whence}")
		if pos < 0:
			raise OSError(f"negative seek position {pos}")
		self._pos = pos
		return pos

	def readinto(self, buffer) -> int:
		view = memoryview(buffer).cast("B")
		want = min(len(view), max(self.length - self._pos, 0))
		done = 0
		while done < want:
			index, offset = divmod(self._pos, self.block_size)
			block = self._block(index)
			chunk = block[offset:offset + want - done]
			if not chunk:
				break
			view[done:done + len(chunk)] = chunk
			done += len(chunk)
			self._pos += len(chunk)
		return done


__all__ = ["HTTPRangeReader"]
