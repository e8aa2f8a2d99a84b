"""Seed a small organizational tree for demos."""

import logging

from sqlalchemy.orm import Session

from fisca.models.organization import Localidad, Circuito, Escuela, Mesa

logger = logging.getLogger("fisca.seeds")

SAMPLE_TREE = {
    "San Fernando": {
        "Circuito 1": {
            "Escuela N° 1 Domingo F. Sarmiento": [1, 2, 3],
            "Escuela N° 5 Manuel Belgrano": [4, 5],
        },
        "Circuito 2": {
            "Escuela N° 12 Juana Azurduy": [6, 7, 8],
        },
    },
}


def seed_sample_data(db: Session) -> None:
    """Insert the sample localidades, circuitos, escuelas and mesas if absent."""
    created = 0
    for localidad_name, circuitos in SAMPLE_TREE.items():
        localidad = db.query(Localidad).filter(Localidad.nombre == localidad_name).first()
        if localidad:
            logger.info("Sample localidad '%s' already present, skipping", localidad_name)
            continue
        localidad = Localidad(nombre=localidad_name)
        db.add(localidad)
        db.flush()
        for circuito_name, escuelas in circuitos.items():
            circuito = Circuito(nombre=circuito_name, localidad_id=localidad.id)
            db.add(circuito)
            db.flush()
            for escuela_name, mesas in escuelas.items():
                escuela = Escuela(nombre=escuela_name, circuito_id=circuito.id)
                db.add(escuela)
                db.flush()
                for numero in mesas:
                    db.add(Mesa(numero=numero, escuela_id=escuela.id))
                created += len(mesas)
    db.commit()
    logger.info("Seeded sample organization (%d mesas)", created)
