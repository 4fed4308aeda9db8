import io
import logging
import os

import pytest

from dumpfilter.core.engine import filter_dump


SAMPLE_DUMP = rb"""-- MySQL dump 10.13  Distrib 8.0.36, for Linux (x86_64)
--
-- Host: localhost    Database: shop
-- ------------------------------------------------------

/*!40101 SET @OLD_CHARACTER_SET_CLIENT=@@CHARACTER_SET_CLIENT */;
/*!40101 SET NAMES utf8mb4 */;

--
-- Table structure for table `comments`
--

DROP TABLE IF EXISTS `comments`;
CREATE TABLE `comments` (
  `id` int NOT NULL AUTO_INCREMENT,
  `body` text,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;

--
-- Dumping data for table `comments`
--

LOCK TABLES `comments` WRITE;
/*!40000 ALTER TABLE `comments` DISABLE KEYS */;
INSERT INTO `comments` VALUES (1,'semi;colon'),(2,'it\'s'),(3,'-- not a comment;'),(4,'/* nor; this */');
/*!40000 ALTER TABLE `comments` ENABLE KEYS */;
UNLOCK TABLES;

--
-- Table structure for table `users`
--

DROP TABLE IF EXISTS `users`;
CREATE TABLE `users` (
  `id` int NOT NULL,
  `name` varchar(64) DEFAULT 'n;a',
  PRIMARY KEY (`id`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;

--
-- Dumping data for table `users`
--

LOCK TABLES `users` WRITE;
INSERT INTO `users` VALUES (1,'alice','C:\\temp'),(2,'bob "b;b"','x;y');
INSERT INTO `users` VALUES (3,'carol',NULL);
UNLOCK TABLES;
/*!40101 SET CHARACTER_SET_CLIENT=@OLD_CHARACTER_SET_CLIENT */;

-- Dump completed on 2024-03-01 12:00:00
"""

COMMENTS_INSERT = (
    rb"INSERT INTO `comments` VALUES (1,'semi;colon'),(2,'it\'s'),(3,'-- not a comment;'),(4,'/* nor; this */');"
    + b"\n"
)


@pytest.fixture()
def sample_dump() -> bytes:
    return SAMPLE_DUMP


@pytest.fixture()
def comments_insert() -> bytes:
    return COMMENTS_INSERT


@pytest.fixture()
def run_filter():
    def _run(data: bytes, exclude=(), **kwargs) -> bytes:
        out = io.BytesIO()
        filter_dump(io.BytesIO(data), out, exclude, **kwargs)
        return out.getvalue()

    return _run


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    # settings must not leak in from the developer's shell
    for key in list(os.environ):
        if key.startswith("DUMPFILTER_"):
            monkeypatch.delenv(key, raising=False)
    yield
    logger = logging.getLogger("dumpfilter")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
