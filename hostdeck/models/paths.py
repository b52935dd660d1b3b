from typing import List, Tuple


ROOT = "/"


def normalize_path(p: str) -> str:
    """Return a slash-separated absolute path; root is '/'."""
    s = (p or "").strip().replace("\\", "/")
    parts = [seg for seg in s.split("/") if seg and seg != "."]
    if not parts:
        return ROOT
    return "/" + "/".join(parts)


def parent_path(p: str) -> str:
    s = normalize_path(p)
    if s == ROOT:
        return ROOT
    head = s.rsplit("/", 1)[0]
    return head or ROOT


def basename(p: str) -> str:
    s = normalize_path(p)
    if s == ROOT:
        return ""
    return s.rsplit("/", 1)[-1]


def breadcrumbs(p: str) -> List[Tuple[str, str]]:
    """Crumbs for a location bar: [("Root", "/"), ("a", "/a"), ("b", "/a/b")]."""
    crumbs = [("Root", ROOT)]
    acc = ""
    for part in normalize_path(p).split("/"):
        if not part:
            continue
        acc += "/" + part
        crumbs.append((part, acc))
    return crumbs
