"""Demo catalog for local runs: ``flask catalogo seed`` or ``database/init_db.py --seed``."""

from __future__ import annotations

from typing import Dict

from mercado_obras.infrastructure.repositories import CatalogRepository, FornecedorRepository


DEMO_FASES = (
    ("fase-fundacao", 1, "Fundacao"),
    ("fase-estrutura", 2, "Estrutura"),
    ("fase-alvenaria", 3, "Alvenaria"),
    ("fase-instalacoes", 4, "Instalacoes"),
    ("fase-acabamento", 5, "Acabamento"),
)

DEMO_GRUPOS = (
    ("grupo-cimento", "Cimento e argamassa"),
    ("grupo-aco", "Aco para construcao"),
    ("grupo-blocos", "Blocos e tijolos"),
    ("grupo-eletrica", "Material eletrico"),
    ("grupo-hidraulica", "Material hidraulico"),
    ("grupo-revestimento", "Revestimentos"),
)

# id, nome, ordem, fases, grupos
DEMO_SERVICOS = (
    ("servico-sapatas", "Sapatas e baldrames", 1, ("fase-fundacao",), ("grupo-cimento", "grupo-aco")),
    ("servico-pilares", "Pilares e vigas", 1, ("fase-estrutura",), ("grupo-cimento", "grupo-aco")),
    ("servico-paredes", "Levantamento de paredes", 1, ("fase-alvenaria",), ("grupo-blocos", "grupo-cimento")),
    ("servico-eletrica", "Instalacao eletrica", 1, ("fase-instalacoes",), ("grupo-eletrica",)),
    ("servico-hidraulica", "Instalacao hidraulica", 2, ("fase-instalacoes",), ("grupo-hidraulica",)),
    ("servico-pisos", "Pisos e azulejos", 1, ("fase-acabamento",), ("grupo-revestimento", "grupo-cimento")),
)

# id, nome, unidade, grupos
DEMO_MATERIAIS = (
    ("material-cimento-cp2", "Cimento CP II 50kg", "saco", ("grupo-cimento",)),
    ("material-argamassa-ac2", "Argamassa AC-II 20kg", "saco", ("grupo-cimento", "grupo-revestimento")),
    ("material-vergalhao-10", "Vergalhao CA-50 10mm", "barra", ("grupo-aco",)),
    ("material-bloco-ceramico", "Bloco ceramico 9x19x19", "milheiro", ("grupo-blocos",)),
    ("material-fio-25", "Fio flexivel 2,5mm", "rolo", ("grupo-eletrica",)),
    ("material-tubo-pvc-25", "Tubo PVC soldavel 25mm", "barra", ("grupo-hidraulica",)),
    ("material-porcelanato", "Porcelanato 60x60", "m2", ("grupo-revestimento",)),
)

DEMO_FORNECEDORES = (
    ("fornecedor-demo", "Deposito Demo Ltda", "contato@deposito-demo.com", ("grupo-cimento", "grupo-blocos")),
)


def seed_demo_catalog(db) -> Dict[str, int]:
    catalog = CatalogRepository()
    for fase_id, cronologia, nome in DEMO_FASES:
        existing = catalog.get(db, "fase", fase_id)
        if existing is not None:
            cronologia = int(existing["cronologia"])
        elif catalog.fase_id_by_cronologia(db, cronologia) is not None:
            # Keep an existing catalog's ordering untouched.
            cronologia = catalog.next_cronologia(db)
        catalog.upsert_fase(db, fase_id=fase_id, cronologia=cronologia, nome=nome, descricao=None)
    for grupo_id, nome in DEMO_GRUPOS:
        catalog.upsert_grupo(db, grupo_id=grupo_id, nome=nome, descricao=None)
    for servico_id, nome, ordem, fase_ids, grupo_ids in DEMO_SERVICOS:
        catalog.upsert_servico(db, servico_id=servico_id, nome=nome, ordem=ordem, descricao=None)
        for fase_id in fase_ids:
            catalog.link(db, "servico_fase", servico_id, fase_id)
        for grupo_id in grupo_ids:
            catalog.link(db, "servico_grupo", servico_id, grupo_id)
    for material_id, nome, unidade, grupo_ids in DEMO_MATERIAIS:
        catalog.upsert_material(db, material_id=material_id, nome=nome, unidade=unidade, descricao=None)
        for grupo_id in grupo_ids:
            catalog.link(db, "material_grupo", material_id, grupo_id)

    fornecedores = FornecedorRepository()
    for fornecedor_id, razao_social, email, grupo_ids in DEMO_FORNECEDORES:
        fornecedores.upsert(
            db,
            fornecedor_id=fornecedor_id,
            razao_social=razao_social,
            cnpj=None,
            email=email,
            status="ativo",
        )
        for grupo_id in grupo_ids:
            catalog.link(db, "fornecedor_grupo", fornecedor_id, grupo_id)
    db.commit()
    return {
        "fases": len(DEMO_FASES),
        "grupos": len(DEMO_GRUPOS),
        "servicos": len(DEMO_SERVICOS),
        "materiais": len(DEMO_MATERIAIS),
        "fornecedores": len(DEMO_FORNECEDORES),
    }
