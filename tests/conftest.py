"""Shared fixtures: a small repository with one config of every supported type."""

import pytest

CIRCLECI = """\
version: 2.1
jobs:
  build:
    docker:
      - image: cimg/go:1.22
    steps:
      - checkout
      - run: go build ./...
  test:
    docker:
      - image: cimg/go:1.22
    steps:
      - run: go test ./...
workflows:
  main:
    jobs:
      - build
      - test:
          requires: [build]
"""

WORKFLOW = """\
name: CI
on: [push]
jobs:
  test:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - run: go test ./...
"""

TASKFILE = """\
version: '3'
tasks:
  build:
    desc: Build
    cmds:
      - go build ./...
  test:
    desc: Test
    deps: [build]
    cmds:
      - go test ./...
"""

DOCKERFILE = """\
FROM golang:1.22 AS build
WORKDIR /src
COPY go.mod go.sum ./
RUN go mod download
COPY . .
RUN go build -o /app ./cmd/api

FROM gcr.io/distroless/static:nonroot
COPY --from=build /app /app
USER nonroot
ENTRYPOINT ["/app"]
"""

COMPOSE = """\
services:
  api:
    build: services/api
    ports:
      - "8080:8080"
    depends_on: [db]
  db:
    image: postgres:16
"""


def write(root, rel, text):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def repo(tmp_path):
    """Repository with a config of every supported type, plus an excluded directory."""
    write(tmp_path, ".circleci/config.yml", CIRCLECI)
    write(tmp_path, ".github/workflows/ci.yml", WORKFLOW)
    write(tmp_path, "Taskfile.yml", TASKFILE)
    write(tmp_path, "services/api/Dockerfile", DOCKERFILE)
    write(tmp_path, "docker-compose.yml", COMPOSE)
    write(tmp_path, "node_modules/pkg/Dockerfile", "FROM node\n")
    return tmp_path
